import pytest

from hisatpipe.cmd import CmdParser, RunConfig
from hisatpipe.errors import ConfigError


@pytest.fixture
def base_args(reads_dir, out_dir, annotations):
    return [
        '--dir', str(reads_dir),
        '--gtf', annotations[0],
        '--rmsk_gtf', annotations[1],
        '--out_dir', str(out_dir),
    ]


def test_defaults(base_args, monkeypatch):
    monkeypatch.delenv('SLURM_NTASKS', raising=False)
    config = CmdParser(base_args).to_config()

    assert isinstance(config, RunConfig)
    assert config.paired is False
    assert config.trim is False
    assert config.adapter is None
    assert config.n_cores == 1
    assert config.count_n_cores == 4


def test_paired_and_trim(base_args):
    config = CmdParser(base_args + ['-p', '-t', 'AGATCGGAAGAGC']).to_config()

    assert config.paired is True
    assert config.trim is True
    assert config.adapter == 'AGATCGGAAGAGC'


def test_trailing_slash_removed(base_args, reads_dir):
    args = list(base_args)
    args[1] = str(reads_dir) + '/'

    assert CmdParser(args).input_dir == str(reads_dir)


def test_n_cores_from_slurm(base_args, monkeypatch):
    monkeypatch.setenv('SLURM_NTASKS', '16')

    assert CmdParser(base_args).to_config().n_cores == 16


def test_config_is_frozen(base_args):
    config = CmdParser(base_args).to_config()

    with pytest.raises(Exception):
        config.paired = True


def test_missing_dir(annotations, out_dir):
    with pytest.raises(ConfigError, match='--dir'):
        CmdParser(['--paired', '--gtf', annotations[0],
            '--rmsk_gtf', annotations[1], '--out_dir', str(out_dir)])


def test_dir_not_found(base_args, tmp_path):
    args = list(base_args)
    args[1] = str(tmp_path / 'nope')

    with pytest.raises(ConfigError, match='not found'):
        CmdParser(args)


def test_trim_without_value(base_args):
    with pytest.raises(ConfigError):
        CmdParser(base_args + ['--trim'])


def test_trim_followed_by_flag(base_args):
    with pytest.raises(ConfigError):
        CmdParser(base_args + ['--trim', '--paired'])


def test_trim_empty_adapter(base_args):
    with pytest.raises(ConfigError, match='adapter'):
        CmdParser(base_args + ['--trim', ' '])


def test_unknown_argument(base_args):
    with pytest.raises(ConfigError):
        CmdParser(base_args + ['--multihits', '3'])


def test_missing_annotation(base_args, tmp_path):
    args = list(base_args)
    args[3] = str(tmp_path / 'missing.gtf')

    with pytest.raises(ConfigError, match='gene GTF'):
        CmdParser(args)


@pytest.mark.parametrize('flag', ['--n_cores', '--count_n_cores'])
def test_non_positive_cores(base_args, flag):
    with pytest.raises(ConfigError, match='CPU core'):
        CmdParser(base_args + [flag, '0'])
