import orjson
import pytest
from invmetrics.cli import main
from invmetrics.source import generate_invitations

RANGE = ["--tenant-id", "t1", "--account-id", "a1", "--from", "2025-09-01", "--to", "2025-09-03"]

def test_generate(capsys):
    main(["generate", *RANGE])
    out = orjson.loads(capsys.readouterr().out)
    assert [e["externalId"] for e in out] == [e.external_id for e in generate_invitations("t1", "a1", "2025-09-01", "2025-09-03")]

def test_ingest_in_memory(capsys):
    main(["ingest", *RANGE, "--store", "memory", "--source-delay-seconds", "0"])
    out = orjson.loads(capsys.readouterr().out)
    assert [p["date"] for p in out] == ["2025-09-01", "2025-09-02", "2025-09-03"]
    assert "previousPeriodComparison" in out[0]

def test_ingest_rejects_inverted_range(capsys):
    with pytest.raises(SystemExit) as exc:
        main(["ingest", "--tenant-id", "t1", "--account-id", "a1", "--from", "2025-09-10", "--to", "2025-09-01",
              "--store", "memory"])
    assert exc.value.code == 2
    assert "from date must be less than or equal to to date" in capsys.readouterr().err
