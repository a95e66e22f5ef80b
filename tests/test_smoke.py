"""Smoke test to verify testing infrastructure is working."""


def test_package_imports():
    """Core modules import without side effects on the mods directory."""
    import battle_themes
    from battle_themes import registry

    assert battle_themes.__version__
    assert registry.CURRENT_VERSION >= 1


def test_python_version():
    """Verify Python version meets requirements."""
    import sys

    assert sys.version_info >= (3, 11), "Python 3.11 or higher required"
