"""
Pytest configuration for MiniPython tests.
"""
import sys
import os

import pytest

# `import minipython` works without installing the package
_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
_SRC_DIR = os.path.join(_ROOT, 'src')

if _SRC_DIR not in sys.path:
	sys.path.insert(0, _SRC_DIR)


@pytest.fixture
def write_program(tmp_path):
	"""Write MiniPython source to a temporary .mpy file and return its path."""
	def _write(source, name="program.mpy"):
		path = tmp_path / name
		path.write_text(source, encoding="utf-8")
		return str(path)
	return _write
