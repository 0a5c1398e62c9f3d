"""Phase timings read from the environment."""

from game.config import PhaseTimings, load_timings


def test_defaults(monkeypatch):
    for name in ("MAFIA_NIGHT_SECONDS", "MAFIA_DAY_SECONDS", "MAFIA_RESULT_SECONDS"):
        monkeypatch.delenv(name, raising=False)
    assert load_timings() == PhaseTimings(night_seconds=15, day_seconds=30, result_seconds=0)


def test_overrides(monkeypatch):
    monkeypatch.setenv("MAFIA_NIGHT_SECONDS", "20")
    monkeypatch.setenv("MAFIA_DAY_SECONDS", "45.5")
    monkeypatch.setenv("MAFIA_RESULT_SECONDS", "5")
    timings = load_timings()
    assert timings.night_seconds == 20
    assert timings.day_seconds == 45.5
    assert timings.result_seconds == 5


def test_bad_values_fall_back(monkeypatch, caplog):
    monkeypatch.setenv("MAFIA_NIGHT_SECONDS", "soon")
    monkeypatch.setenv("MAFIA_DAY_SECONDS", "0")
    monkeypatch.setenv("MAFIA_RESULT_SECONDS", "-1")
    timings = load_timings()
    assert timings == PhaseTimings()
    assert "MAFIA_NIGHT_SECONDS" in caplog.text


def test_result_pause_may_be_zero(monkeypatch):
    monkeypatch.setenv("MAFIA_RESULT_SECONDS", "0")
    assert load_timings().result_seconds == 0
