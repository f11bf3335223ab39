"""Root pytest configuration.

Keeps tests off the network and away from the user's ``.env``/results dir.
"""

import pytest


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    """Clear ELEVPLOT_* variables and point the output image into tmp_path."""
    for name in (
        "ELEVPLOT_TILE_URL",
        "ELEVPLOT_HTTP_TIMEOUT",
        "ELEVPLOT_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    output = tmp_path / "results" / "output_plot.png"
    monkeypatch.setenv("ELEVPLOT_OUTPUT_PATH", str(output))
    return output
