from __future__ import annotations

import json
import os
import subprocess
import sys
import tempfile
import unittest
from pathlib import Path


REPO_ROOT = Path(__file__).resolve().parent


def _build_fixture_tree(root: Path) -> None:
    (root / "lib").mkdir()
    (root / "native").mkdir()
    (root / "main.js").write_bytes(b"console.log('hi')\n")
    (root / "lib" / "a.js").write_bytes(b"a" * 100)
    (root / "lib" / "b.js").write_bytes(b"b" * 50)
    (root / "native" / "addon.node").write_bytes(os.urandom(32))


class CLIIntegrationTests(unittest.TestCase):
    def _run(self, cmd, *, expect: int | None = 0, cwd: Path | None = None):
        env = os.environ.copy()
        existing = env.get("PYTHONPATH", "")
        env["PYTHONPATH"] = str(REPO_ROOT) if not existing else f"{REPO_ROOT}{os.pathsep}{existing}"
        proc = subprocess.run(
            cmd,
            cwd=cwd,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            env=env,
        )
        if expect is not None and proc.returncode != expect:
            raise AssertionError(
                f"CLI exited {proc.returncode}, expected {expect}\nCommand: {' '.join(cmd)}\nSTDOUT:\n{proc.stdout}\nSTDERR:\n{proc.stderr}"
            )
        return proc

    def run_cli(self, args, **kwargs):
        return self._run([sys.executable, "-m", "asarfs.cli"] + list(args), **kwargs)

    def run_tamper(self, args, **kwargs):
        return self._run([sys.executable, str(REPO_ROOT / "scripts" / "tamper.py")] + list(args), **kwargs)

    def make_workspace(self):
        tmp_src = tempfile.TemporaryDirectory()
        tmp_workspace = tempfile.TemporaryDirectory()
        self.addCleanup(tmp_src.cleanup)
        self.addCleanup(tmp_workspace.cleanup)
        src = Path(tmp_src.name)
        _build_fixture_tree(src)
        return src, Path(tmp_workspace.name)

    def test_header_and_list(self):
        src, workspace = self.make_workspace()
        header_path = workspace / "header.json"
        proc = self.run_cli(["header", str(src), "-o", str(header_path), "--unpack-dir", "native"])
        self.assertIn("Done:", proc.stdout)

        header = json.loads(header_path.read_text(encoding="utf-8"))
        self.assertEqual("0", header["files"]["lib"]["files"]["a.js"]["offset"])
        self.assertEqual("100", header["files"]["lib"]["files"]["b.js"]["offset"])
        self.assertTrue(header["files"]["native"]["unpacked"])
        self.assertNotIn("offset", header["files"]["native"]["files"]["addon.node"])
        self.assertEqual("SHA256", header["files"]["main.js"]["integrity"]["algorithm"])

        listed = self.run_cli(["list", str(header_path)]).stdout.splitlines()
        self.assertEqual(
            ["/lib", "/lib/a.js", "/lib/b.js", "/main.js", "/native", "/native/addon.node"],
            listed,
        )

        packed = self.run_cli(["list", str(header_path), "--is-pack", "--ignore-unpack"]).stdout.splitlines()
        self.assertEqual(
            ["pack   : /lib", "pack   : /lib/a.js", "pack   : /lib/b.js", "pack   : /main.js"],
            packed,
        )

    def test_header_to_stdout(self):
        src, _ = self.make_workspace()
        proc = self.run_cli(["header", str(src), "--indent", "2"])
        header = json.loads(proc.stdout)
        self.assertIn("files", header)
        self.assertEqual(["lib", "main.js", "native"], list(header["files"]))

    def test_fake_entry_is_hidden(self):
        src, workspace = self.make_workspace()
        header_path = workspace / "header.json"
        self.run_cli(["header", str(src), "-o", str(header_path)])

        self.run_tamper(["inject", str(header_path), "lib/evil.js", "--offset", "40", "--size", "7"])
        listed = self.run_cli(["list", str(header_path)]).stdout.splitlines()
        self.assertIn("/lib/evil.js", listed)

        proc = self.run_cli(["list", str(header_path), "--ignore-fake-file"])
        filtered = proc.stdout.splitlines()
        self.assertNotIn("/lib/evil.js", filtered)
        self.assertIn("/lib/a.js", filtered)
        self.assertIn("/main.js", filtered)
        self.assertIn("evil.js", proc.stderr)

    def test_get_entry(self):
        src, workspace = self.make_workspace()
        header_path = workspace / "header.json"
        self.run_cli(["header", str(src), "-o", str(header_path)])
        node = json.loads(self.run_cli(["get", str(header_path), "lib/b.js"]).stdout)
        self.assertEqual(50, node["size"])
        self.assertEqual("100", node["offset"])

        missing = self.run_cli(["get", str(header_path), "lib/zzz.js"], expect=2)
        self.assertIn("was not found", missing.stderr)

    def test_errors_exit_2(self):
        with tempfile.TemporaryDirectory() as tmp:
            bad = Path(tmp) / "bad.json"
            bad.write_text("{not json", encoding="utf-8")
            proc = self.run_cli(["list", str(bad)], expect=2)
            self.assertIn("Error:", proc.stderr)
            proc = self.run_cli(["list", str(Path(tmp) / "missing.json")], expect=2)
            self.assertIn("Error:", proc.stderr)

            shaped = Path(tmp) / "shaped.json"
            shaped.write_text(json.dumps({"files": {"x": {"size": "big"}}}), encoding="utf-8")
            self.run_cli(["list", str(shaped)], expect=2)

            self.run_tamper(["shift", str(shaped), "x", "--delta", "1"], expect=2)


if __name__ == "__main__":
    unittest.main()
