"""CLI interface for the NSX-T upgrade coordinator."""

import json
import sys
import uuid

import click

from nsxt_upgrade import __version__, constants
from nsxt_upgrade.command_monitor import CommandMonitor, write_cancel_command
from nsxt_upgrade.config import Config
from nsxt_upgrade.declaration import load_declaration
from nsxt_upgrade.exceptions import NsxUpgradeError
from nsxt_upgrade.logging_config import setup_logging
from nsxt_upgrade.nsx_client import UpgradeClientSet
from nsxt_upgrade.output_collector import OutputCollector
from nsxt_upgrade.run_service import RunStore, UpgradeRunService
from nsxt_upgrade.work_dir_resolver import ENV_VAR_NAME, get_user_config_path, resolve_work_dir, write_user_config

INT_CONFIG_KEYS = {"nsx.timeout", "upgrade.timeout", "upgrade.interval", "upgrade.delay"}
BOOL_CONFIG_KEYS = {"nsx.verify_ssl"}


@click.group()
@click.version_option(version=__version__)
@click.option('--work-dir', type=click.Path(),
              help=f'Working directory. Priority: CLI flag > {ENV_VAR_NAME} env var > ~/.nsxt-upgrade.config.json > /opt/nsxt-upgrade')
@click.pass_context
def main(ctx, work_dir):
    """NSX-T Upgrade Coordinator - Edge, Host and Management upgrade orchestration."""
    ctx.ensure_object(dict)

    resolution = resolve_work_dir(cli_work_dir=work_dir)

    config = Config(work_dir=resolution.path)
    ctx.obj['config'] = config
    ctx.obj['work_dir_resolution'] = resolution

    log_dir = config.get_path(constants.DIR_LOGS)
    logger = setup_logging(log_dir, config.log_level, console_output=True)
    ctx.obj['logger'] = logger

    logger.info(resolution.log_message())
    logger.info(f"Configuration loaded: {config.config_file}")


def _build_clients(config: Config) -> UpgradeClientSet:
    return UpgradeClientSet.from_config(config)


def _build_service(config: Config) -> UpgradeRunService:
    return UpgradeRunService(_build_clients(config), RunStore(config.get_path(constants.DIR_RUNS)))


def _fail(logger, message: str, error: Exception) -> None:
    click.echo(f"{message}: {error}", err=True)
    logger.error(f"{message}: {error}")
    sys.exit(1)


# ============================================================================
# Setup Commands
# ============================================================================

@main.command()
@click.option('--no-user-config', is_flag=True, help='Do not write ~/.nsxt-upgrade.config.json')
@click.pass_context
def init(ctx, no_user_config):
    """Initialize the work directory."""
    config = ctx.obj['config']
    resolution = ctx.obj['work_dir_resolution']

    click.echo(f"Work directory: {config.work_dir} ({resolution.source.value})")
    if not config.config_file.exists():
        config.save()
    click.echo(f"Configuration file: {config.config_file}")

    if no_user_config:
        click.echo("Skipped writing user config (--no-user-config)")
    else:
        try:
            user_config_path = write_user_config(config.work_dir)
            click.echo(f"Wrote user config: {user_config_path}")
        except OSError as e:
            click.echo(f"Could not write user config {get_user_config_path()}: {e}", err=True)

    click.echo()
    click.echo("Next steps:")
    click.echo("  nsxt-upgrade config set nsx.host YOUR_NSX_MANAGER")
    click.echo("  nsxt-upgrade config set nsx.username YOUR_USERNAME")
    click.echo("  nsxt-upgrade config set nsx.password YOUR_PASSWORD")


@main.group()
def config():
    """Manage configuration."""
    pass


@config.command(name='set')
@click.argument('key')
@click.argument('value')
@click.pass_context
def set_config(ctx, key, value):
    """Set configuration value."""
    config = ctx.obj['config']
    logger = ctx.obj['logger']

    if key in INT_CONFIG_KEYS:
        try:
            value = int(value)
        except ValueError:
            raise click.BadParameter(f"{key} must be an integer", param_hint='VALUE')
    elif key in BOOL_CONFIG_KEYS:
        value = value.strip().lower() in ("1", "true", "yes", "on")

    config.set(key, value)
    shown = "********" if key == "nsx.password" else value
    logger.info(f"Configuration updated: {key} = {shown}")
    click.echo(f"Set {key} = {shown}")


@config.command()
@click.pass_context
def show(ctx):
    """Show current configuration."""
    config = ctx.obj['config']
    wait = config.wait_parameters

    click.echo("Current Configuration:")
    click.echo(f"  NSX Manager: {config.nsx_host or '(not set)'}")
    click.echo(f"  Username: {config.nsx_username or '(not set)'}")
    click.echo(f"  Password: {'*' * 8 if config.nsx_password else '(not set)'}")
    click.echo(f"  Verify SSL: {config.nsx_verify_ssl}")
    click.echo(f"  Request Timeout: {config.nsx_timeout}s")
    click.echo(f"  Status Wait: timeout={wait.timeout}s interval={wait.interval}s delay={wait.delay}s")
    click.echo(f"  Log Level: {config.log_level}")
    click.echo(f"  Work Directory: {config.work_dir}")


@main.command()
@click.argument('plan', type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def validate(ctx, plan):
    """Validate an upgrade run declaration without contacting NSX."""
    config = ctx.obj['config']
    logger = ctx.obj['logger']

    try:
        run = load_declaration(plan, config.wait_parameters)
    except NsxUpgradeError as e:
        _fail(logger, "Invalid declaration", e)

    click.echo(f"Declaration is valid: {plan}")
    click.echo(f"  Preparation ID: {run.upgrade_prepare_ready_id}")
    for component in constants.UPGRADE_COMPONENT_ORDER:
        groups = run.groups_for(component)
        if groups:
            partial = " (partial)" if run.is_partial(component) else ""
            click.echo(f"  {component} groups: {', '.join(group.id for group in groups)}{partial}")
        if run.settings_for(component) is not None:
            click.echo(f"  {component} settings: declared")
    click.echo(f"  Wait: timeout={run.wait.timeout}s interval={run.wait.interval}s delay={run.wait.delay}s")


@main.command()
@click.pass_context
def status(ctx):
    """Show the current upgrade status of all components."""
    config = ctx.obj['config']
    logger = ctx.obj['logger']

    try:
        states = OutputCollector(_build_clients(config)).collect_state()
    except NsxUpgradeError as e:
        _fail(logger, "Error reading upgrade status", e)

    _echo_state(states)


# ============================================================================
# Run Commands
# ============================================================================

@main.group()
def run():
    """Manage upgrade runs."""
    pass


@run.command()
@click.argument('plan', type=click.Path(exists=True, dir_okay=False))
@click.option('--run-id', help='Existing run to update, or ID for the new run')
@click.pass_context
def apply(ctx, plan, run_id):
    """Create or update an upgrade run from a declaration file."""
    config = ctx.obj['config']
    logger = ctx.obj['logger']

    try:
        declared = load_declaration(plan, config.wait_parameters)
        service = _build_service(config)
    except NsxUpgradeError as e:
        _fail(logger, "Cannot start upgrade run", e)

    run_id = run_id or str(uuid.uuid4())
    click.echo(f"Applying upgrade run {run_id} (preparation {declared.upgrade_prepare_ready_id})...")

    monitor = CommandMonitor(config, run_id, lambda reason: service.cancel())
    try:
        with monitor:
            record = service.apply(declared, run_id)
    except KeyboardInterrupt:
        click.echo("\nInterrupted; the upgrade service keeps running the current component", err=True)
        sys.exit(130)
    except NsxUpgradeError as e:
        _fail(logger, f"Upgrade run {run_id} did not complete", e)

    click.echo(f"Upgrade run {record.run_id} {record.state}")
    for component, outcome in record.result.get("component_outcomes", {}).items():
        click.echo(f"  {component}: {outcome}")
    if record.result.get("partial_upgrade"):
        click.echo("  Partial upgrade: some upgrade unit groups were not upgraded")
    triggered = record.result.get("post_checks_triggered") or []
    if triggered:
        click.echo(f"  Post-upgrade checks triggered: {', '.join(triggered)}")


@run.command(name='show')
@click.argument('run_id')
@click.option('--refresh', is_flag=True, help='Re-read groups and status from NSX')
@click.option('--json', 'as_json', is_flag=True, help='Print the full run record as JSON')
@click.pass_context
def show_run(ctx, run_id, refresh, as_json):
    """Show an upgrade run."""
    config = ctx.obj['config']
    logger = ctx.obj['logger']

    try:
        if refresh:
            record = _build_service(config).read(run_id)
        else:
            record = RunStore(config.get_path(constants.DIR_RUNS)).load(run_id)
    except NsxUpgradeError as e:
        _fail(logger, f"Error reading run {run_id}", e)

    if as_json:
        click.echo(json.dumps(record.to_dict(), indent=2))
        return

    click.echo(f"Run: {record.run_id}")
    click.echo(f"  Preparation ID: {record.upgrade_prepare_ready_id}")
    click.echo(f"  State: {record.state or '(not run)'}")
    if record.error:
        click.echo(f"  Error: {record.error}")
    click.echo(f"  Created: {record.created_at}")
    click.echo(f"  Updated: {record.updated_at}")

    plan = record.output.get("upgrade_group_plan") or []
    if plan:
        click.echo("  Upgrade group plan:")
        for group in plan:
            flags = []
            if not group.get("enabled", True):
                flags.append("disabled")
            if group.get("pause_after_each_upgrade_unit"):
                flags.append("pause-after-each")
            suffix = f" [{', '.join(flags)}]" if flags else ""
            click.echo(f"    {group.get('type')} {group.get('id')}{suffix}")
    for state in record.output.get("state") or []:
        version = f" -> {state.get('target_version')}" if state.get("target_version") else ""
        click.echo(f"  {state.get('type')}: {state.get('status')}{version}")
        for group_state in state.get("group_state") or []:
            click.echo(f"    {group_state.get('group_name') or group_state.get('group_id')}: {group_state.get('status')}")


@run.command(name='list')
@click.pass_context
def list_runs(ctx):
    """List upgrade runs."""
    config = ctx.obj['config']
    records = RunStore(config.get_path(constants.DIR_RUNS)).list()

    if not records:
        click.echo("No upgrade runs")
        return

    click.echo(f"{'RUN ID':<38} {'STATE':<11} {'PREPARATION':<24} UPDATED")
    for record in records:
        click.echo(f"{record.run_id:<38} {record.state or '-':<11} {record.upgrade_prepare_ready_id:<24} {record.updated_at}")


@run.command(name='delete')
@click.argument('run_id')
@click.pass_context
def delete_run(ctx, run_id):
    """Forget an upgrade run. NSX is not touched."""
    config = ctx.obj['config']
    logger = ctx.obj['logger']

    try:
        RunStore(config.get_path(constants.DIR_RUNS)).delete(run_id)
    except NsxUpgradeError as e:
        _fail(logger, "Error deleting run", e)

    logger.info(f"Deleted run {run_id}")
    click.echo(f"Deleted run {run_id}")


@run.command(name='cancel')
@click.argument('run_id')
@click.option('--reason', default='Admin requested', help='Reason recorded with the cancellation')
@click.pass_context
def cancel_run(ctx, run_id, reason):
    """Ask a running upgrade to stop at its next status wait."""
    config = ctx.obj['config']
    logger = ctx.obj['logger']

    command_file = write_cancel_command(config, run_id, reason)
    logger.info(f"Queued cancellation of run {run_id}: {command_file.name}")
    click.echo(f"Cancellation queued for run {run_id}")


def _echo_state(states) -> None:
    if not states:
        click.echo("No upgrade status reported")
        return
    for state in states:
        version = f" -> {state.target_version}" if state.target_version else ""
        click.echo(f"{state.type}: {state.status}{version}")
        if state.details:
            click.echo(f"  {state.details}")
        for group_state in state.group_state:
            click.echo(f"  {group_state.group_name or group_state.group_id}: {group_state.status}")


if __name__ == '__main__':
    main()
