import logging
import os

import click
from rich.logging import RichHandler

from .constants import (
    DEFAULT_BACKUP_DIR,
    DEFAULT_HUB_CONTEXT,
    DEFAULT_HUB_MANIFESTS_DIR,
    DEFAULT_LOG_FILE,
    DEFAULT_NAMESPACE,
    DEFAULT_SPOKE_MANIFESTS_DIR,
    DEFAULT_TOKEN_DIR,
    READINESS_BEST_EFFORT,
    READINESS_POLICIES,
)
from .core import ArgoDeployer
from .errors import DeployerError
from .services.config_loader import DEFAULT_CONFIG_FILE, ConfigLoader


def _resolve_option(cli_value, config, key, default=None):
    if cli_value is not None:
        return cli_value
    if key in config:
        return config[key]
    return default


logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[RichHandler(rich_tracebacks=True, show_level=False, show_path=False)],
)


def _configure_logging(verbose: bool, log_file: str):
    logger = logging.getLogger("argodeploy")
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.setLevel(logging.DEBUG)
    else:
        logger.setLevel(logging.INFO)

    if not log_file:
        return

    log_path = os.path.abspath(log_file)
    for handler in logger.handlers:
        if isinstance(handler, logging.FileHandler) and handler.baseFilename == log_path:
            return

    log_dir = os.path.dirname(log_path)
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
    file_handler = logging.FileHandler(log_path, mode="a", encoding="utf-8")
    file_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    file_handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
    logger.addHandler(file_handler)


def _build_deployer(ctx: click.Context) -> ArgoDeployer:
    settings = ctx.obj
    try:
        return ArgoDeployer(
            hub_context=settings["hub_context"],
            namespace=settings["namespace"],
            server=settings["server"],
            hub_manifests_dir=settings["hub_manifests_dir"],
            spoke_manifests_dir=settings["spoke_manifests_dir"],
            backup_dir=settings["backup_dir"],
            readiness_policy=settings["readiness_policy"],
            settle_seconds=settings["settle_seconds"],
            save_tokens=settings["save_tokens"],
            token_dir=settings["token_dir"],
            insecure=settings["insecure"],
            command_timeout=settings["command_timeout"],
            assume_yes=settings["assume_yes"],
            confirm=lambda prompt: click.confirm(prompt, default=False),
        )
    except DeployerError as exc:
        raise click.ClickException(str(exc)) from exc


context_option = click.option(
    "--context",
    "context_name",
    required=False,
    help="Kubeconfig context of the hub (default: --hub-context).",
)


@click.group()
@click.option(
    "--config",
    required=False,
    type=click.Path(),
    help=f"Path to a YAML configuration file. Defaults to {DEFAULT_CONFIG_FILE} if present.",
)
@click.option(
    "--server",
    required=False,
    envvar="ARGOCD_SERVER",
    help="ArgoCD server address. Defaults to the ingress host, then https://localhost:8080.",
)
@click.option("--namespace", required=False, help=f"Control-plane namespace (default: {DEFAULT_NAMESPACE}).")
@click.option(
    "--hub-context",
    required=False,
    help=f"Kubeconfig context of the hub cluster (default: {DEFAULT_HUB_CONTEXT}).",
)
@click.option("--hub-manifests-dir", type=click.Path(), help="Directory with the hub manifests.")
@click.option("--spoke-manifests-dir", type=click.Path(), help="Directory with the spoke manifests.")
@click.option("--backup-dir", type=click.Path(), help=f"Backup directory (default: {DEFAULT_BACKUP_DIR}).")
@click.option("--log-file", type=click.Path(), help=f"Path to log file (default: {DEFAULT_LOG_FILE}).")
@click.option("--verbose", is_flag=True, default=None, help="Enable verbose logging")
@click.option(
    "--readiness-policy",
    type=click.Choice(READINESS_POLICIES),
    default=None,
    help="What a readiness timeout does: warn and continue, or fail.",
)
@click.option("--settle-seconds", type=float, default=None, help="Delay between steps in seconds.")
@click.option(
    "--save-tokens",
    is_flag=True,
    default=None,
    help="Also write generated tokens to <token-dir>/<user>-token.txt (mode 600).",
)
@click.option("--token-dir", type=click.Path(), help=f"Token directory (default: {DEFAULT_TOKEN_DIR}).")
@click.option(
    "--insecure/--verify-tls",
    default=None,
    help="Skip TLS verification when talking to the ArgoCD server (default: insecure).",
)
@click.option("--command-timeout", type=float, default=None, help="Timeout for each external command.")
@click.option("--yes", "assume_yes", is_flag=True, default=False, help="Do not ask for confirmation.")
@click.pass_context
def main(
    ctx,
    config,
    server,
    namespace,
    hub_context,
    hub_manifests_dir,
    spoke_manifests_dir,
    backup_dir,
    log_file,
    verbose,
    readiness_policy,
    settle_seconds,
    save_tokens,
    token_dir,
    insecure,
    command_timeout,
    assume_yes,
):
    """Deploy and operate ArgoCD across a hub cluster and its spokes."""
    try:
        config_loader = ConfigLoader()
        resolved_config = config
        if resolved_config is None:
            default_config_path = os.path.join(os.getcwd(), DEFAULT_CONFIG_FILE)
            if os.path.exists(default_config_path):
                resolved_config = default_config_path

        config_values = config_loader.load(resolved_config)
    except DeployerError as exc:
        raise click.ClickException(str(exc)) from exc

    verbose = bool(_resolve_option(verbose, config_values, "verbose", default=False))
    log_file = _resolve_option(log_file, config_values, "log_file", default=DEFAULT_LOG_FILE)
    readiness_policy = _resolve_option(
        readiness_policy, config_values, "readiness_policy", default=READINESS_BEST_EFFORT
    )
    if readiness_policy not in READINESS_POLICIES:
        raise click.ClickException(
            f"Invalid readiness_policy '{readiness_policy}'. Use one of: {', '.join(READINESS_POLICIES)}."
        )
    command_timeout = _resolve_option(command_timeout, config_values, "command_timeout")

    ctx.obj = {
        "server": _resolve_option(server, config_values, "server"),
        "namespace": _resolve_option(namespace, config_values, "namespace", default=DEFAULT_NAMESPACE),
        "hub_context": _resolve_option(
            hub_context, config_values, "hub_context", default=DEFAULT_HUB_CONTEXT
        ),
        "hub_manifests_dir": _resolve_option(
            hub_manifests_dir, config_values, "hub_manifests_dir", default=DEFAULT_HUB_MANIFESTS_DIR
        ),
        "spoke_manifests_dir": _resolve_option(
            spoke_manifests_dir,
            config_values,
            "spoke_manifests_dir",
            default=DEFAULT_SPOKE_MANIFESTS_DIR,
        ),
        "backup_dir": _resolve_option(backup_dir, config_values, "backup_dir", default=DEFAULT_BACKUP_DIR),
        "readiness_policy": readiness_policy,
        "settle_seconds": float(
            _resolve_option(settle_seconds, config_values, "settle_seconds", default=2.0)
        ),
        "save_tokens": bool(_resolve_option(save_tokens, config_values, "save_tokens", default=False)),
        "token_dir": _resolve_option(token_dir, config_values, "token_dir", default=DEFAULT_TOKEN_DIR),
        "insecure": bool(_resolve_option(insecure, config_values, "insecure", default=True)),
        "command_timeout": float(command_timeout) if command_timeout is not None else None,
        "assume_yes": assume_yes,
    }

    _configure_logging(verbose, log_file)


@main.command("install-hub")
@context_option
@click.pass_context
def install_hub(ctx, context_name):
    """Install the ArgoCD control plane on the hub cluster."""
    raise SystemExit(_build_deployer(ctx).install_hub(context_name))


@main.command("install-spoke")
@click.argument("spoke_context")
@click.pass_context
def install_spoke(ctx, spoke_context):
    """Prepare a spoke cluster to be managed by the hub."""
    raise SystemExit(_build_deployer(ctx).install_spoke(spoke_context))


@main.command("uninstall-hub")
@context_option
@click.pass_context
def uninstall_hub(ctx, context_name):
    """Back up and remove the control plane from the hub cluster."""
    raise SystemExit(_build_deployer(ctx).uninstall_hub(context_name))


@main.command("uninstall-spoke")
@click.argument("spoke_context")
@click.pass_context
def uninstall_spoke(ctx, spoke_context):
    """Remove the hub access resources from a spoke cluster."""
    raise SystemExit(_build_deployer(ctx).uninstall_spoke(spoke_context))


@main.command("register-cluster")
@click.argument("spoke_context")
@click.option("--name", "cluster_name", required=False, help="Cluster name (default: the context name).")
@click.pass_context
def register_cluster(ctx, spoke_context, cluster_name):
    """Register a spoke cluster on the hub."""
    raise SystemExit(_build_deployer(ctx).register_cluster(spoke_context, cluster_name))


@main.command("check-status")
@context_option
@click.pass_context
def check_status(ctx, context_name):
    """Show control-plane workloads and registered clusters."""
    raise SystemExit(_build_deployer(ctx).check_status(context_name))


@main.command("check-ingress")
@context_option
@click.pass_context
def check_ingress(ctx, context_name):
    """Show the ingress host and probe its health endpoint."""
    raise SystemExit(_build_deployer(ctx).check_ingress(context_name))


@main.command("check-clusters")
@context_option
@click.pass_context
def check_clusters(ctx, context_name):
    """List clusters registered on the hub."""
    raise SystemExit(_build_deployer(ctx).check_clusters(context_name))


@main.command("get-admin-password")
@context_option
@click.pass_context
def get_admin_password(ctx, context_name):
    """Print the bootstrap admin password."""
    raise SystemExit(_build_deployer(ctx).get_admin_password(context_name))


@main.command("show-credentials")
@context_option
@click.pass_context
def show_credentials(ctx, context_name):
    """Print the admin URL, username and password."""
    raise SystemExit(_build_deployer(ctx).show_credentials(context_name))


@main.command("login")
@context_option
@click.pass_context
def login(ctx, context_name):
    """Log in as admin and list registered clusters."""
    raise SystemExit(_build_deployer(ctx).login(context_name))


@main.command("create-user")
@click.argument("username")
@click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True)
@click.pass_context
def create_user(ctx, username, password):
    """Create a local account bound to role:developer."""
    raise SystemExit(_build_deployer(ctx).create_user(username, password))


@main.command("change-password")
@click.argument("username")
@click.option("--password", prompt="New password", hide_input=True, confirmation_prompt=True)
@click.pass_context
def change_password(ctx, username, password):
    """Set a new password for an existing account."""
    raise SystemExit(_build_deployer(ctx).change_password(username, password))


@main.command("list-users")
@click.pass_context
def list_users(ctx):
    """List accounts and their role bindings."""
    raise SystemExit(_build_deployer(ctx).list_users())


@main.command("generate-token")
@click.argument("username")
@click.argument("ttl_seconds", required=False, type=click.IntRange(min=0))
@click.pass_context
def generate_token(ctx, username, ttl_seconds):
    """Generate an API token. Without TTL_SECONDS it is valid until revoked."""
    raise SystemExit(_build_deployer(ctx).generate_token(username, ttl_seconds))


@main.command("list-tokens")
@click.argument("username")
@click.pass_context
def list_tokens(ctx, username):
    """Show an account and its tokens."""
    raise SystemExit(_build_deployer(ctx).list_tokens(username))


@main.command("revoke-token")
@click.argument("username")
@click.argument("token_id")
@click.pass_context
def revoke_token(ctx, username, token_id):
    """Revoke a token by id."""
    raise SystemExit(_build_deployer(ctx).revoke_token(username, token_id))


@main.command("backup")
@click.option("--reason", default="manual", show_default=True, help="Label used in the file name.")
@click.pass_context
def backup(ctx, reason):
    """Export the ArgoCD configuration to the backup directory."""
    raise SystemExit(_build_deployer(ctx).backup(reason))


@main.command("list-backups")
@click.pass_context
def list_backups(ctx):
    """List backups, oldest first."""
    raise SystemExit(_build_deployer(ctx).list_backups())


@main.command("restore")
@click.argument("backup_file", type=click.Path())
@click.pass_context
def restore(ctx, backup_file):
    """Restore a backup after taking a safety backup."""
    raise SystemExit(_build_deployer(ctx).restore(backup_file))


@main.command("prune-backups")
@click.option("--days", type=click.IntRange(min=0), default=7, show_default=True)
@click.pass_context
def prune_backups(ctx, days):
    """Delete backups older than DAYS."""
    raise SystemExit(_build_deployer(ctx).prune_backups(days))


if __name__ == "__main__":
    main()
