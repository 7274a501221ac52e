"""CLI commands implemented with click.

Each command opens the vault, hands the manager to a small helper, and
closes it again so queued writes reach the disk before the process exits.
"""
from __future__ import annotations
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator
import click
from config.settings import DEFAULT_ITERATIONS, MAX_ITERATIONS, DEFAULT_VAULT_PATH, LOG_LEVEL
from passhero.lib.datastore import DatastoreUnavailable, FileDatastore, ensure_datastore_file
from passhero.lib.manager import VaultManager, InvalidMasterPassphrase, NoSuchApplication

log = logging.getLogger(__name__)

@contextmanager
def open_vault(ctx: click.Context, password: str) -> Iterator[VaultManager]:
	path: Path = ctx.obj['vault']
	try:
		vm = VaultManager(FileDatastore(path), password, iterations=ctx.obj['iterations'])
	except DatastoreUnavailable as e:
		raise click.ClickException(f'{e} (run `passhero init` first)')
	except InvalidMasterPassphrase:
		raise click.ClickException('Invalid master password')
	with vm:
		yield vm
	if vm.last_persistence_error is not None:
		raise click.ClickException(f'Changes could not be saved: {vm.last_persistence_error}')

def add_application(vm: VaultManager, name: str) -> str:
	if vm.has_password(name):
		raise click.ClickException('Application already registered!')
	vm.generate_password(name)
	return vm.get_plaintext_password(name)

def show_application(vm: VaultManager, name: str) -> str:
	password = vm.get_plaintext_password(name)
	if password is None:
		raise click.ClickException(f'No password stored for {name}')
	return password

@click.group()
@click.option('--vault', envvar='PASSHERO_VAULT_PATH', type=click.Path(dir_okay=False, path_type=Path),
	default=DEFAULT_VAULT_PATH, show_default=True, help='Encrypted vault file.')
@click.option('--iterations', envvar='PASSHERO_KDF_ITERATIONS', type=click.IntRange(min=1, max=MAX_ITERATIONS),
	default=DEFAULT_ITERATIONS, hidden=True)
@click.option('-v', '--verbose', is_flag=True, help='Log at INFO level.')
@click.pass_context
def cli(ctx, vault, iterations, verbose):
	"""passhero: generated passwords in a locally encrypted vault."""
	logging.basicConfig(level=logging.INFO if verbose else LOG_LEVEL,
		format='%(asctime)s %(levelname)s %(name)s: %(message)s')
	ctx.obj = {'vault': vault, 'iterations': iterations}

@cli.command()
@click.pass_context
def init(ctx):
	"""Create an empty vault file if none exists."""
	path = ctx.obj['vault']
	if path.exists():
		click.echo(f'Vault already exists at {path}.')
		return
	try:
		ensure_datastore_file(path)
	except DatastoreUnavailable as e:
		raise click.ClickException(str(e))
	click.echo(f'Vault created at {path}.')

@cli.command('list')
@click.option('--password', prompt=True, hide_input=True)
@click.pass_context
def list_applications(ctx, password):
	"""List applications with a stored password."""
	with open_vault(ctx, password) as vm:
		names = sorted(vm.list_applications())
	if not names:
		click.echo('No applications stored.')
	for name in names:
		click.echo(name)

@cli.command()
@click.argument('name')
@click.option('--password', prompt=True, hide_input=True)
@click.pass_context
def add(ctx, name, password):
	"""Generate a password for a new application."""
	with open_vault(ctx, password) as vm:
		secret = add_application(vm, name)
	click.echo(f'Password for {name}: {secret}')

@cli.command()
@click.argument('name')
@click.option('--password', prompt=True, hide_input=True)
@click.pass_context
def show(ctx, name, password):
	"""Print the stored password of an application."""
	with open_vault(ctx, password) as vm:
		click.echo(show_application(vm, name))

@cli.command()
@click.argument('name')
@click.option('--password', prompt=True, hide_input=True)
@click.option('--yes', is_flag=True, help='Do not ask for confirmation.')
@click.pass_context
def change(ctx, name, password, yes):
	"""Replace an application's password with a new one."""
	with open_vault(ctx, password) as vm:
		if not vm.has_password(name):
			raise click.ClickException(f'No password stored for {name}')
		if not yes:
			click.confirm(f'Replace the password for {name}?', abort=True)
		try:
			vm.change_password(name)
		except NoSuchApplication as e:
			raise click.ClickException(str(e.args[0]))
		secret = vm.get_plaintext_password(name)
	click.echo(f'New password for {name}: {secret}')

@cli.command()
@click.argument('name')
@click.option('--password', prompt=True, hide_input=True)
@click.option('--yes', is_flag=True, help='Do not ask for confirmation.')
@click.pass_context
def delete(ctx, name, password, yes):
	"""Delete an application's password."""
	with open_vault(ctx, password) as vm:
		if not vm.has_password(name):
			click.echo('Not found')
			return
		if not yes:
			click.confirm(f'Delete the password for {name}?', abort=True)
		vm.delete_password(name)
	click.echo(f'Deleted {name}.')

@cli.command()
@click.option('--password', prompt=True, hide_input=True)
@click.option('--new-password', prompt=True, hide_input=True, confirmation_prompt=True)
@click.pass_context
def rekey(ctx, password, new_password):
	"""Re-encrypt the vault under a new master password."""
	with open_vault(ctx, password) as vm:
		try:
			vm.change_master_password(new_password)
		except InvalidMasterPassphrase as e:
			raise click.ClickException(str(e))
	click.echo('Master password changed.')
