from typing import Dict, List, Optional, Set

import pytest

from hisatpipe import worker
from hisatpipe.cmd import RunConfig
from hisatpipe.tools import CommandResult


def _arg_value(args: List[str], flag: str) -> str:
    return args[args.index(flag) + 1]


def _kv_values(args: List[str], *keys: str) -> List[str]:
    return [a.split('=', 1)[1] for a in args
        if '=' in a and a.split('=', 1)[0] in keys]


def _touch(fpath: str, content: str = 'x') -> None:
    with open(fpath, 'w') as f:
        f.write(content)


class FakeTools:
    """
    Stands in for bbduk.sh/hisat2/samtools/featureCounts: records every
    call and creates the files each tool would write.

    fail: {(tool, token)} makes a call fail when args[0] == tool and token
    appears in one of its arguments ('' matches every call of the tool).
    """

    def __init__(self, mapped_reads: int = 42):
        self.calls: List[List[str]] = []
        self.fail: Set[tuple] = set()
        self.mapped_reads: int = mapped_reads
        self.count_stdout: Dict[str, str] = {}

    def tool_calls(self, tool: str) -> List[List[str]]:
        return [c for c in self.calls if c[0] == tool]

    def _should_fail(self, args: List[str]) -> bool:
        for tool, token in self.fail:
            if args[0] == tool and any(token in a for a in args):
                return True
        return False

    def __call__(self, args, log_fpath: Optional[str] = None
        ) -> CommandResult:
        args = [str(a) for a in args]
        self.calls.append(args)
        if log_fpath:
            _touch(log_fpath, ' '.join(args))

        if self._should_fail(args):
            return CommandResult(args, 1, '', f'{args[0]}: boom', 0.0)

        stdout: str = ''
        tool: str = args[0]
        if tool == 'bbduk.sh':
            for fpath in _kv_values(args, 'out', 'out1', 'out2'):
                _touch(fpath)
        elif tool == 'hisat2':
            _touch(_arg_value(args, '-S'), '@HD\n')
        elif tool == 'samtools' and args[1] == 'view' and '-c' in args:
            stdout = self.count_stdout.get(args[-1], f'{self.mapped_reads}\n')
        elif tool == 'samtools' and args[1] in ('view', 'sort'):
            _touch(_arg_value(args, '-o'))
        elif tool == 'samtools' and args[1] == 'index':
            _touch(f'{args[-1]}.bai')
        elif tool == 'featureCounts':
            bams: List[str] = [a for a in args if a.endswith('.bam')]
            header: List[str] = \
                ['Geneid', 'Chr', 'Start', 'End', 'Strand', 'Length'] + bams
            rows: List[str] = [
                '# Program:featureCounts v2.0.1; Command:' + ' '.join(args),
                '\t'.join(header),
                '\t'.join(['geneA', 'I', '1', '100', '+', '100'] +
                    ['3'] * len(bams)),
                '\t'.join(['geneB', 'II', '5', '50', '-', '46'] +
                    ['0'] * len(bams)),
            ]
            _touch(_arg_value(args, '-o'), '\n'.join(rows) + '\n')

        return CommandResult(args, 0, stdout, '', 0.0)


@pytest.fixture
def fake_tools(monkeypatch):
    tools = FakeTools()
    monkeypatch.setattr(worker, 'run_command', tools)
    monkeypatch.setattr(
        worker, 'check_tools', lambda names: [f'/usr/bin/{n}' for n in names])
    return tools


@pytest.fixture
def annotations(tmp_path):
    ref = tmp_path / 'ref'
    ref.mkdir()
    gtf = ref / 'genes.gtf'
    rmsk = ref / 'rmsk.gtf'
    gtf.write_text('')
    rmsk.write_text('')
    return str(gtf), str(rmsk)


@pytest.fixture
def reads_dir(tmp_path):
    d = tmp_path / 'reads'
    d.mkdir()
    return d


@pytest.fixture
def out_dir(tmp_path):
    d = tmp_path / 'out'
    d.mkdir()
    return d


@pytest.fixture
def make_config(reads_dir, out_dir, annotations):
    def _make(paired: bool = False, adapter: Optional[str] = None,
        **kwargs) -> RunConfig:
        params = dict(
            input_dir=str(reads_dir),
            paired=paired,
            trim=adapter is not None,
            adapter=adapter,
            index='/ref/genome',
            gtf=annotations[0],
            rmsk_gtf=annotations[1],
            n_cores=8,
            count_n_cores=4,
            out_dir=str(out_dir)
        )
        params.update(kwargs)
        return RunConfig(**params)
    return _make


@pytest.fixture
def write_fastqs(reads_dir):
    def _write(*names: str) -> None:
        for name in names:
            (reads_dir / name).write_bytes(b"")
    return _write
