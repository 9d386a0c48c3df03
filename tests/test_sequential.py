import pytest

from distlab import mrapps
from distlab.sequential import main, run_sequential


def _write_inputs(tmp_path):
    first = tmp_path / "one.txt"
    second = tmp_path / "two.txt"
    first.write_text("the cat the\n")
    second.write_text("the dog\n")
    return [str(first), str(second)]


def test_word_count(tmp_path):
    files = _write_inputs(tmp_path)
    out = tmp_path / "out.txt"
    run_sequential(mrapps.wc_map, mrapps.wc_reduce, files, out)
    lines = out.read_text().splitlines()
    counts = dict(line.split(" ") for line in lines)
    assert counts["the"] == "3"
    assert sum(int(c) for c in counts.values()) == 5
    assert [line.split(" ")[0] for line in lines] == sorted(counts)


def test_indexer_output(tmp_path):
    files = _write_inputs(tmp_path)
    out = tmp_path / "out.txt"
    run_sequential(mrapps.indexer_map, mrapps.indexer_reduce, files, out)
    lines = dict(line.split(" ", 1) for line in out.read_text().splitlines())
    assert lines["dog"] == f"1 {files[1]}"
    assert lines["the"] == f"2 {','.join(sorted(files))}"


def test_no_input_words_gives_empty_output(tmp_path):
    empty = tmp_path / "empty.txt"
    empty.write_text("123 456")
    out = tmp_path / "out.txt"
    run_sequential(mrapps.wc_map, mrapps.wc_reduce, [str(empty)], out)
    assert out.read_text() == ""


def test_missing_input_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        run_sequential(
            mrapps.wc_map, mrapps.wc_reduce, [str(tmp_path / "missing")], tmp_path / "o"
        )


def test_main_writes_mr_out_0(tmp_path, monkeypatch):
    files = _write_inputs(tmp_path)
    expected = tmp_path / "expected.txt"
    run_sequential(mrapps.wc_map, mrapps.wc_reduce, files, expected)
    monkeypatch.chdir(tmp_path)
    assert main(["wc.so", *files]) == 0
    assert (tmp_path / "mr-out-0").read_text() == expected.read_text()


def test_main_usage(capsys):
    assert main(["wc.so"]) == 1
    assert "Usage: mrsequential" in capsys.readouterr().err


def test_main_unknown_app(tmp_path, capsys):
    files = _write_inputs(tmp_path)
    assert main(["unknown.so", *files]) == 1
    assert "cannot load plugin" in capsys.readouterr().err


def test_main_missing_file(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    assert main(["wc", "missing.txt"]) == 1
    assert "missing.txt" in capsys.readouterr().err