"""
Pytest configuration and fixtures for Warden tests.
"""

import sys
from pathlib import Path

import pytest_asyncio

# Add src directory to path so imports work
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from warden.database.db_connection import ConnectionManager  # noqa: E402


@pytest_asyncio.fixture()
async def db_connection(tmp_path: Path):
    """An open ConnectionManager on a fresh database file."""
    connection = ConnectionManager()
    await connection.open(tmp_path / "warden.db")
    try:
        yield connection
    finally:
        await connection.close()
