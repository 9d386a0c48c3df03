import os
import threading
import time

from distlab import mrapps
from distlab.cli import master_main, worker_main
from distlab.master import SOCKET_ENV
from distlab.sequential import run_sequential


def test_master_usage(capsys):
    assert master_main([]) == 1
    assert "Usage: mrmaster inputfiles..." in capsys.readouterr().err


def test_worker_usage(capsys):
    assert worker_main([]) == 1
    assert "Usage: mrworker xxx.so" in capsys.readouterr().err


def test_worker_unknown_app(capsys):
    assert worker_main(["nope.so"]) == 1
    assert "cannot load plugin nope.so" in capsys.readouterr().err


def test_job(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    sockname = str(tmp_path / "m.sock")
    monkeypatch.setenv(SOCKET_ENV, sockname)
    (tmp_path / "a.txt").write_text("one two two\nthree\n")
    (tmp_path / "b.txt").write_text("two three, three; four\n")
    files = ["a.txt", "b.txt"]

    codes = []
    master = threading.Thread(target=lambda: codes.append(master_main(files)))
    master.start()
    deadline = time.monotonic() + 5
    while not os.path.exists(sockname) and time.monotonic() < deadline:
        time.sleep(0.02)

    assert worker_main(["wc"]) == 0
    master.join(timeout=30)
    assert codes == [0]

    produced = []
    for index in range(10):
        produced.extend((tmp_path / f"mr-out-{index}").read_text().splitlines())

    expected = tmp_path / "expected.txt"
    run_sequential(mrapps.wc_map, mrapps.wc_reduce, files, expected)
    assert sorted(produced) == expected.read_text().splitlines()
    assert not os.path.exists(sockname)