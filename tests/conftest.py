import pytest

import observability


@pytest.fixture(autouse=True)
def _isolated_metrics(tmp_path, monkeypatch):
    """Keep metric rows written during tests out of the working tree."""

    sink = observability._CsvMetricsSink(str(tmp_path / "metrics.csv"))
    monkeypatch.setattr(observability, "_metrics_sink", sink)
    return sink
