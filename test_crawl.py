from __future__ import annotations

import os
import tempfile
import unittest
from pathlib import Path

from asarfs.crawl import build_header, crawl
from asarfs.errors import SymlinkEscapeError
from asarfs.node import DirectoryNode, FileNode, LinkNode


def _build_fixture_tree(root: Path, *, include_symlink: bool = True) -> bool:
    (root / "lib").mkdir()
    (root / "lib" / "native").mkdir()
    (root / "index.js").write_bytes(b"require('./lib/util')\n")
    (root / "lib" / "util.js").write_bytes(b"module.exports = 1\n" * 10)
    (root / "lib" / "native" / "addon.node").write_bytes(os.urandom(128))
    (root / "lib" / "native" / "addon.js").write_bytes(b"x")
    (root / "icon.png").write_bytes(os.urandom(64))
    if include_symlink and hasattr(os, "symlink"):
        try:
            os.symlink("util.js", root / "lib" / "alias.js")
            return True
        except (OSError, NotImplementedError):
            pass
    return False


class CrawlTests(unittest.TestCase):
    def run_with_tmpdir(self, func):
        with tempfile.TemporaryDirectory() as tmp:
            func(Path(tmp))

    def test_crawl_preorder_sorted(self):
        def scenario(tmp: Path):
            has_link = _build_fixture_tree(tmp)
            filenames, metadata = crawl(str(tmp))
            rel = [os.path.relpath(p, tmp).replace(os.sep, "/") for p in filenames]
            expected = ["icon.png", "index.js", "lib"]
            if has_link:
                expected.append("lib/alias.js")
            expected += ["lib/native", "lib/native/addon.js", "lib/native/addon.node", "lib/util.js"]
            self.assertEqual(expected, rel)
            self.assertEqual("directory", metadata[str(tmp / "lib")].type)
            self.assertEqual("file", metadata[str(tmp / "index.js")].type)
            if has_link:
                self.assertEqual("link", metadata[str(tmp / "lib" / "alias.js")].type)

        self.run_with_tmpdir(scenario)

    def test_build_header_sequential_and_threaded_agree(self):
        def scenario(tmp: Path):
            _build_fixture_tree(tmp)
            seq = build_header(str(tmp))
            par = build_header(str(tmp), jobs=4)
            self.assertEqual(seq.list_files(), par.list_files())
            self.assertEqual(seq.offset, par.offset)
            total = sum(
                n.size for _, n in seq.walk() if isinstance(n, FileNode) and not n.unpacked
            )
            self.assertEqual(total, seq.offset)
            self.assertEqual(set(par.list_files()), set(par.list_files(ignore_fake_file=True)))

        self.run_with_tmpdir(scenario)

    def test_unpack_patterns(self):
        def scenario(tmp: Path):
            has_link = _build_fixture_tree(tmp)
            fs = build_header(str(tmp), unpack="*.png", unpack_dir="lib/native")
            self.assertTrue(fs.get_node("icon.png").unpacked)
            self.assertIsNone(fs.get_node("icon.png").offset)
            native = fs.get_node(os.path.join("lib", "native"))
            self.assertIsInstance(native, DirectoryNode)
            self.assertTrue(native.unpacked)
            for name in ("addon.node", "addon.js"):
                node = fs.get_node(os.path.join("lib", "native", name))
                self.assertTrue(node.unpacked)
                self.assertIsNone(node.offset)
            util = fs.get_node(os.path.join("lib", "util.js"))
            self.assertFalse(util.unpacked)
            self.assertIsNotNone(util.offset)
            if has_link:
                self.assertIsInstance(fs.get_file(os.path.join("lib", "alias.js"), follow_links=False), LinkNode)
                self.assertIs(util, fs.get_file(os.path.join("lib", "alias.js")))

        self.run_with_tmpdir(scenario)

    def test_transform_hook(self):
        def scenario(tmp: Path):
            _build_fixture_tree(tmp, include_symlink=False)

            def strip(chunks):
                for chunk in chunks:
                    yield chunk.replace(b" ", b"")

            fs = build_header(str(tmp), transform=lambda p: strip if p.endswith(".js") else None)
            util = fs.get_node(os.path.join("lib", "util.js"))
            self.assertEqual(len(b"module.exports=1\n" * 10), util.size)
            # source left untouched
            self.assertEqual(b"module.exports = 1\n" * 10, (tmp / "lib" / "util.js").read_bytes())

        self.run_with_tmpdir(scenario)

    def test_escaping_link_aborts_build(self):
        def scenario(tmp: Path):
            src = tmp / "src"
            src.mkdir()
            (tmp / "outside.txt").write_text("o")
            try:
                os.symlink(str(tmp / "outside.txt"), src / "out")
            except (OSError, NotImplementedError, AttributeError):
                self.skipTest("symlinks unavailable")
            with self.assertRaises(SymlinkEscapeError):
                build_header(str(src))

        self.run_with_tmpdir(scenario)


if __name__ == "__main__":
    unittest.main()
