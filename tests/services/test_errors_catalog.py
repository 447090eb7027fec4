import pytest

from argodeploy.errors_catalog import actionable_error


def test_actionable_error_formats_message_with_suggested_action():
    message = actionable_error("unknown_context", context="spoke-1")

    assert "Context 'spoke-1' was not found in kubeconfig." in message
    assert "Suggested action:" in message


def test_actionable_error_rejects_unknown_code():
    with pytest.raises(KeyError):
        actionable_error("does_not_exist")


def test_every_error_class_is_documented():
    import inspect

    from argodeploy import errors

    classes = [
        obj
        for _name, obj in inspect.getmembers(errors, inspect.isclass)
        if issubclass(obj, errors.DeployerError)
    ]

    assert classes
    for error_class in classes:
        assert error_class.__doc__ and error_class.__doc__.startswith("Raised when"), error_class
