"""
Pytest configuration and fixtures for SeisAttr tests.
"""
import numpy as np
import pytest
import tempfile
import shutil
from pathlib import Path

# Add project root to path
import sys
sys.path.insert(0, str(Path(__file__).parent.parent))


@pytest.fixture
def random_volume():
    """Seeded random volume (12 inlines × 10 xlines × 16 samples)."""
    from models.seismic_volume import SeismicVolume

    rng = np.random.default_rng(42)
    data = rng.normal(0.0, 1.0, size=(12, 10, 16)).astype(np.float32)
    return SeismicVolume(data=data, di=25.0, dj=25.0, dk=4.0)


@pytest.fixture
def uniform_volume():
    """Volume holding the integers 1..100, each ten times."""
    from models.seismic_volume import SeismicVolume

    data = np.tile(np.arange(1, 101, dtype=np.float32), 10).reshape(10, 10, 10)
    return SeismicVolume(data=data)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    tmpdir = tempfile.mkdtemp()
    yield Path(tmpdir)
    # Cleanup
    shutil.rmtree(tmpdir, ignore_errors=True)
