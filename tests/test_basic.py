"""
Basic tests for the Shortsieve package.
"""
import unittest
import sys
import os

# Add the parent directory to the path so we can import the application modules
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))


class BasicTests(unittest.TestCase):
    """Basic test cases."""

    def test_import(self):
        """Test that the main modules can be imported."""
        try:
            import models
            import services.search_service
            from version import __version__
            self.assertTrue(__version__)
        except ImportError as e:
            self.fail(f"Import failed: {e}")

    def test_environment(self):
        """Test that the packaging files are present."""
        root = os.path.join(os.path.dirname(__file__), '..')
        self.assertTrue(os.path.exists(os.path.join(root, 'README.md')))
        self.assertTrue(os.path.exists(os.path.join(root, 'requirements.txt')))

    def test_iteration_cost(self):
        """One page plus enrichment of a full page costs 109 quota units by default."""
        from config import Config
        cfg = Config(load_from_env=False)
        self.assertEqual(cfg.detail_batch_cost, 9)
        self.assertEqual(cfg.iteration_cost, 109)


if __name__ == '__main__':
    unittest.main()
