from click.testing import CliRunner
from passhero.cli.commands import cli


def _env(monkeypatch, tmp_path):
	monkeypatch.setenv('PASSHERO_VAULT_PATH', str(tmp_path / 'vault.properties'))
	monkeypatch.setenv('PASSHERO_KDF_ITERATIONS', '1000')


def test_cli_help():
	r = CliRunner().invoke(cli, ['--help'])
	assert r.exit_code == 0
	for command in ('init', 'add', 'show', 'change', 'delete', 'rekey'):
		assert command in r.output


def test_change_and_delete_lifecycle(monkeypatch, tmp_path):
	_env(monkeypatch, tmp_path)
	runner = CliRunner()
	runner.invoke(cli, ['init'])
	add = runner.invoke(cli, ['add', 'mail'], input='pw\n')
	old = add.output.strip().splitlines()[-1].split(': ', 1)[1]
	# declining the confirmation keeps the old password
	keep = runner.invoke(cli, ['change', 'mail'], input='pw\nn\n')
	assert keep.exit_code == 1
	show = runner.invoke(cli, ['show', 'mail'], input='pw\n')
	assert show.output.strip().endswith(old)
	ch = runner.invoke(cli, ['change', 'mail', '--yes'], input='pw\n')
	assert ch.exit_code == 0
	new = ch.output.strip().splitlines()[-1].split(': ', 1)[1]
	assert new != old
	dl = runner.invoke(cli, ['delete', 'mail'], input='pw\ny\n')
	assert dl.exit_code == 0
	assert 'Deleted mail' in dl.output
	gone = runner.invoke(cli, ['delete', 'mail', '--yes'], input='pw\n')
	assert 'Not found' in gone.output


def test_change_unknown_application(monkeypatch, tmp_path):
	_env(monkeypatch, tmp_path)
	runner = CliRunner()
	runner.invoke(cli, ['init'])
	r = runner.invoke(cli, ['change', 'ghost', '--yes'], input='pw\n')
	assert r.exit_code == 1
	assert 'No password stored for ghost' in r.output


def test_rekey(monkeypatch, tmp_path):
	_env(monkeypatch, tmp_path)
	runner = CliRunner()
	runner.invoke(cli, ['init'])
	runner.invoke(cli, ['add', 'mail'], input='old\n')
	rk = runner.invoke(cli, ['rekey'], input='old\nnew\nnew\n')
	assert rk.exit_code == 0
	assert 'Master password changed' in rk.output
	assert runner.invoke(cli, ['list'], input='old\n').exit_code == 1
	lst = runner.invoke(cli, ['list'], input='new\n')
	assert lst.exit_code == 0
	assert 'mail' in lst.output
