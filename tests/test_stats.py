"""Tests for lab timing statistics."""
import pytest

from scoring.stats import HumanDttms, LabStats, StatsAggregator

START = "000_lab_start"
FINISH = "100_lab_finish"
T0 = 1_700_000_000  # 2023-11-14 22:13:20 UTC


@pytest.fixture
def aggregator(store):
    return StatsAggregator(store, START, FINISH)


class TestStatsAggregator:
    """Tests for StatsAggregator.get_detailed_stats."""

    def test_empty_course(self, aggregator):
        """Test course without events gives an empty mapping."""
        assert aggregator.get_detailed_stats("os") == {}

    def test_started_and_finished(self, aggregator, store, make_entry):
        """Test counts, first start, first finish and delta."""
        store.create_entry(make_entry(event_type=START, timestamp=T0 + 60))
        store.create_entry(make_entry(event_type=START, timestamp=T0))
        store.create_entry(make_entry(event_type=FINISH, timestamp=T0 + 3720))
        store.create_entry(make_entry(event_type=FINISH, timestamp=T0 + 9000))

        stats = aggregator.get_detailed_stats("os")

        assert stats == {
            "john.doe": {
                "os/01": LabStats(start_counts=2, first_run=T0, first_finish=T0 + 3720, delta_seconds=3720),
            }
        }

    def test_not_finished(self, aggregator, store, make_entry):
        """Test missing finish leaves finish and delta empty."""
        store.create_entry(make_entry(event_type=START, timestamp=T0))

        stat = aggregator.get_detailed_stats("os")["john.doe"]["os/01"]

        assert stat.first_finish is None
        assert stat.delta_seconds is None
        assert stat.to_dict() == {"start_counts": 1, "first_run": T0}

    def test_finish_without_start_is_ignored(self, aggregator, store, make_entry):
        """Test groups exist only where the lab was started."""
        store.create_entry(make_entry(event_type=FINISH, timestamp=T0))

        assert aggregator.get_detailed_stats("os") == {}

    def test_negative_delta_passes_through(self, aggregator, store, make_entry):
        """Test finish recorded before the first start keeps a negative delta."""
        store.create_entry(make_entry(event_type=START, timestamp=T0 + 120))
        store.create_entry(make_entry(event_type=FINISH, timestamp=T0))

        stat = aggregator.get_detailed_stats("os")["john.doe"]["os/01"]

        assert stat.delta_seconds == -120

    def test_grouped_per_student_and_lab(self, aggregator, store, make_entry):
        """Test separate groups per student and lab."""
        store.create_entry(make_entry(student="ann.a", lab="01", event_type=START, timestamp=T0))
        store.create_entry(make_entry(student="ann.a", lab="02", event_type=START, timestamp=T0))
        store.create_entry(make_entry(student="bob.b", lab="01", event_type=START, timestamp=T0))
        store.create_entry(make_entry(student="bob.b", lab="01", event_type=START, timestamp=T0, course="db"))

        stats = aggregator.get_detailed_stats("os")

        assert sorted(stats) == ["ann.a", "bob.b"]
        assert sorted(stats["ann.a"]) == ["os/01", "os/02"]
        assert list(stats["bob.b"]) == ["os/01"]

    def test_human_readable(self, aggregator, store, make_entry):
        """Test human readable timestamps and duration."""
        store.create_entry(make_entry(event_type=START, timestamp=T0))
        store.create_entry(make_entry(event_type=FINISH, timestamp=T0 + 90061))

        stat = aggregator.get_detailed_stats("os", include_human_dttm=True)["john.doe"]["os/01"]

        assert stat.human_dttms == HumanDttms(
            first_run="2023-11-14 22:13:20",
            first_finish="2023-11-15 23:14:21",
            delta="1d1h1m",
        )

    def test_human_readable_timezone_and_format(self, store, make_entry):
        """Test configured format and timezone are used."""
        aggregator = StatsAggregator(store, START, FINISH, timestamp_format="%d.%m %H:%M", timezone="Europe/Moscow")
        store.create_entry(make_entry(event_type=START, timestamp=T0))

        stat = aggregator.get_detailed_stats("os", include_human_dttm=True)["john.doe"]["os/01"]

        assert stat.human_dttms.first_run == "15.11 01:13"
        assert stat.human_dttms.first_finish is None
        assert stat.human_dttms.delta is None

    def test_no_human_readable_by_default(self, aggregator, store, make_entry):
        store.create_entry(make_entry(event_type=START, timestamp=T0))

        stat = aggregator.get_detailed_stats("os")["john.doe"]["os/01"]

        assert stat.human_dttms is None


class TestLabStatsSerialization:
    """Tests for the JSON shape of LabStats."""

    def test_full(self):
        stat = LabStats(
            start_counts=3,
            first_run=10,
            first_finish=3730,
            delta_seconds=3720,
            human_dttms=HumanDttms(first_run="a", first_finish="b", delta="1h2m"),
        )

        assert stat.to_dict() == {
            "start_counts": 3,
            "first_run": 10,
            "first_finish": 3730,
            "delta_first_run_first_finish": 3720,
            "human_dttms": {
                "first_run": "a",
                "first_finish": "b",
                "delta_first_run_first_finish": "1h2m",
            },
        }
