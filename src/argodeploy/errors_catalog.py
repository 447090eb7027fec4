"""Actionable error catalog for ArgoDeploy."""

from typing import Dict

_ERROR_MESSAGES: Dict[str, Dict[str, str]] = {
    "unknown_context": {
        "what": "Context '{context}' was not found in kubeconfig.",
        "next": "Run `kubectl config get-contexts` and pass one of the listed names.",
    },
    "missing_resource_set": {
        "what": "Manifest not found or not readable: {path}",
        "next": "Check the manifests directory (`--hub-manifests-dir`/`--spoke-manifests-dir`).",
    },
    "credential_unavailable": {
        "what": "Could not read secret `{secret}` in namespace `{namespace}` after {attempts} attempts.",
        "next": "Confirm ArgoCD is installed and running with `argodeploy check-status`.",
    },
    "login_failed": {
        "what": "Login to {server} as `{username}` failed.",
        "next": "Check the server address (`--server` or ARGOCD_SERVER) and the credentials.",
    },
    "login_ambiguous": {
        "what": "Login to {server} returned an unrecognized response.",
        "next": "Run the command with `--verbose` and inspect the argocd output in the log file.",
    },
    "missing_binary": {
        "what": "Required command not found: {binary}.",
        "next": "Install `{binary}` and make sure it is available on PATH.",
    },
    "rbac_configmap_missing": {
        "what": "ConfigMap `{configmap}` was not found in namespace `{namespace}`.",
        "next": "Install the hub with `argodeploy install-hub` before managing accounts.",
    },
    "backup_not_found": {
        "what": "Backup file not found: {path}",
        "next": "List available backups with `argodeploy list-backups`.",
    },
    "namespace_missing": {
        "what": "Namespace `{namespace}` was not found in context `{context}`.",
        "next": "Install the hub first or pass the correct `--namespace`.",
    },
}


def actionable_error(code: str, **kwargs: str) -> str:
    if code not in _ERROR_MESSAGES:
        raise KeyError(f"Unknown error catalog key: {code}")

    template = _ERROR_MESSAGES[code]
    what = template["what"].format(**kwargs)
    next_step = template["next"].format(**kwargs)
    return f"{what} Suggested action: {next_step}"
