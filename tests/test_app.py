import subprocess
import sys


def test_app_help_runs():
    proc = subprocess.run(
        [sys.executable, "-m", "walkin_queue.app", "-h"],
        capture_output=True,
        text=True,
        check=False,
    )
    assert proc.returncode == 0
    out = proc.stdout + proc.stderr
    assert "main entrypoint" in out
    assert "serve" in out
    assert "send" in out


def test_send_help_lists_operations():
    proc = subprocess.run(
        [sys.executable, "-m", "walkin_queue.app", "send", "-h"],
        capture_output=True,
        text=True,
        check=False,
    )
    assert proc.returncode == 0
    out = proc.stdout + proc.stderr
    assert "IMPORT_STATE" in out
    assert "--dir" in out


def test_serve_rejects_bad_timezone():
    proc = subprocess.run(
        [sys.executable, "-m", "walkin_queue.app", "serve", "--timezone", "Nowhere/Land"],
        capture_output=True,
        text=True,
        check=False,
        timeout=30,
    )
    assert proc.returncode == 2
    assert "configuration error" in proc.stderr


def test_send_reports_unreadable_import_file(tmp_path):
    missing = tmp_path / "backup.json"
    proc = subprocess.run(
        [
            sys.executable,
            "-m",
            "walkin_queue.app",
            "send",
            "IMPORT_STATE",
            "--file",
            str(missing),
            "--url",
            "ws://127.0.0.1:9",
        ],
        capture_output=True,
        text=True,
        check=False,
        timeout=30,
    )
    assert proc.returncode == 2
    assert "cannot read" in proc.stderr
    assert "cannot reach" not in proc.stderr


def test_send_reports_invalid_json_import_file(tmp_path):
    bad = tmp_path / "backup.json"
    bad.write_text("{not json", encoding="utf-8")
    proc = subprocess.run(
        [sys.executable, "-m", "walkin_queue.app", "send", "IMPORT_STATE", "--file", str(bad)],
        capture_output=True,
        text=True,
        check=False,
        timeout=30,
    )
    assert proc.returncode == 2
    assert "cannot read" in proc.stderr
