"""Bulk GitHub Advanced Security changes for GitHub Enterprise Importer migrations."""
