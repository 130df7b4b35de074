import json
from datetime import datetime
from pathlib import Path

import pytest

from media2nextcloud.exceptions import MetadataExtractionError
from media2nextcloud.metadata import extract as extract_module
from media2nextcloud.metadata.extract import CaptureDates, MetadataExtractor
from media2nextcloud.metadata.fallback import ExifFallbackResolver
from media2nextcloud.metadata.normalize import normalize_buckets
from media2nextcloud.metadata.sidecar import MetadataResolver, timestamp_to_bucket


def write_sidecar(directory: Path, title: str, taken=None, created=None, name=None) -> Path:
    body = {"title": title}
    if taken is not None:
        body["photoTakenTime"] = {"timestamp": taken, "formatted": "ignored"}
    if created is not None:
        body["creationTime"] = {"timestamp": created}
    path = directory / (name or f"{title}.supplemental-metadata.json")
    path.write_text(json.dumps(body))
    return path


# --- Timestamps ---

def test_timestamp_iso_and_epoch():
    assert timestamp_to_bucket("2021-03-04T05:06:07Z") == "2021/03"
    assert timestamp_to_bucket("1700000000") == "2023/11"
    assert timestamp_to_bucket("0") == "1970/01"
    assert timestamp_to_bucket("0001-01-01T00:00:00Z") == "0001/01"


@pytest.mark.parametrize("value", [
    "", "yesterday", "2021-03-04 05:06:07", "2021-03-04T05:06:07", "12.5", "99999999999999999999",
])
def test_timestamp_unparsable(value):
    assert timestamp_to_bucket(value) is None


# --- Sidecars ---

def test_sidecar_prefers_photo_taken_time(tmp_path, state):
    sidecar = write_sidecar(tmp_path, "IMG_1.jpg", taken="2019-07-01T10:00:00Z", created="1700000000")

    MetadataResolver().resolve_all([sidecar], state)

    assert state.path_index == {tmp_path / "IMG_1.jpg": "2019/07"}


def test_sidecar_falls_back_to_creation_time(tmp_path, state):
    sidecar = write_sidecar(tmp_path, "IMG_2.jpg", taken="not a date", created="1700000000")

    MetadataResolver().resolve_all([sidecar], state)

    assert state.path_index == {tmp_path / "IMG_2.jpg": "2023/11"}


def test_sidecar_target_comes_from_title(tmp_path, state):
    sidecar = write_sidecar(tmp_path, "Original Name.jpg", taken="1600000000",
                            name="Original Na.jpg.suppl.json")

    MetadataResolver().resolve_all([sidecar], state)

    assert list(state.path_index) == [tmp_path / "Original Name.jpg"]


def test_absolute_title_stays_in_sidecar_folder(tmp_path, state):
    sidecar = write_sidecar(tmp_path, "/etc/passwd", taken="1600000000", name="passwd.jpg.suppl.json")

    MetadataResolver().resolve_all([sidecar], state)

    assert list(state.path_index) == [tmp_path / "etc" / "passwd"]
    assert all(tmp_path in p.parents for p in state.path_index)


@pytest.mark.parametrize("title", ["../outside.jpg", "album/../../outside.jpg", "/", "\\\\"])
def test_escaping_title_is_skipped(tmp_path, state, title):
    sidecar = write_sidecar(tmp_path, title, taken="1600000000", name="IMG_7.jpg.suppl.json")

    MetadataResolver().resolve_all([sidecar], state)

    assert state.path_index == {}
    assert [s.reason for s in state.skipped] == ["sidecar has no usable title"]


def test_sidecar_without_timestamps_is_skipped_and_claimed(tmp_path, state):
    sidecar = write_sidecar(tmp_path, "IMG_3.jpg", taken="bad", created="")

    resolved = MetadataResolver().resolve_all([sidecar], state)

    assert resolved == 0
    assert state.path_index == {}
    assert [s.path for s in state.skipped] == [sidecar]
    assert tmp_path / "IMG_3.jpg" in state.claimed


def test_malformed_sidecar_is_skipped(tmp_path, state):
    broken = tmp_path / "IMG_4.jpg.supplemental-metadata.json"
    broken.write_text("{not json")
    listing = tmp_path / "IMG_5.jpg.supplemental-metadata.json"
    listing.write_text("[1, 2, 3]")

    resolver = MetadataResolver()
    assert resolver.parse(broken).title == ""
    resolver.resolve_all([broken, listing], state)

    assert state.path_index == {}
    assert len(state.skipped) == 2


def test_duplicate_sidecar_targets_last_write_wins(tmp_path, state):
    first = write_sidecar(tmp_path, "IMG_6.jpg", taken="2010-01-01T00:00:00Z")
    second = write_sidecar(tmp_path, "IMG_6.jpg", taken="2012-02-01T00:00:00Z", name="IMG_6.jpg(1).suppl.json")

    MetadataResolver().resolve_all([first, second], state)

    assert state.path_index == {tmp_path / "IMG_6.jpg": "2012/02"}


# --- Embedded metadata ---

def fake_dates(mapping):
    def get_capture_dates(self, path):
        value = mapping[path.name]
        if isinstance(value, Exception):
            raise value
        return value
    return get_capture_dates


def test_fallback_prefers_created_then_original(monkeypatch, tmp_path, state):
    for name in ("a.jpg", "b.jpg", "c.jpg", "d.jpg"):
        (tmp_path / name).write_bytes(b"x")

    monkeypatch.setattr(MetadataExtractor, "get_capture_dates", fake_dates({
        "a.jpg": CaptureDates(created=datetime(2015, 4, 1), original=datetime(2014, 1, 1)),
        "b.jpg": CaptureDates(original=datetime(2014, 9, 30)),
        "c.jpg": CaptureDates(),
        "d.jpg": MetadataExtractionError("no EXIF"),
    }))

    media = sorted(tmp_path.iterdir())
    resolved = ExifFallbackResolver().resolve_all(media, state)

    assert resolved == 4
    assert state.path_index == {
        tmp_path / "a.jpg": "2015/04",
        tmp_path / "b.jpg": "2014/09",
        tmp_path / "c.jpg": "0001/01",
        tmp_path / "d.jpg": "0001/01",
    }


def test_fallback_skips_indexed_claimed_and_artifacts(monkeypatch, tmp_path, state):
    for name in ("indexed.jpg", "claimed.jpg", "fresh.jpg", ".DS_Store", "Thumbs.db"):
        (tmp_path / name).write_bytes(b"x")
    gone = tmp_path / "vanished.jpg"

    state.set_from_sidecar(tmp_path / "indexed.jpg", "2020/01")
    state.claim(tmp_path / "claimed.jpg")

    calls = []

    def get_capture_dates(self, path):
        calls.append(path.name)
        return CaptureDates(created=datetime(2018, 8, 8))

    monkeypatch.setattr(MetadataExtractor, "get_capture_dates", get_capture_dates)

    media = [tmp_path / n for n in ("indexed.jpg", "claimed.jpg", "fresh.jpg", ".DS_Store", "Thumbs.db")] + [gone]
    ExifFallbackResolver().resolve_all(media, state)

    assert calls == ["fresh.jpg"]
    assert state.path_index == {tmp_path / "indexed.jpg": "2020/01", tmp_path / "fresh.jpg": "2018/08"}
    assert {s.reason for s in state.skipped} == {"ignored OS artifact", "not a regular file"}
    assert len(state.skipped) == 3


def test_fallback_keeps_first_writer(state, caplog):
    p = Path("/photos/x.jpg")
    assert state.set_from_fallback(p, "2001/01")
    assert not state.set_from_fallback(p, "2002/02")
    assert state.path_index[p] == "2001/01"
    assert "already indexed" in caplog.text


class MockTrack:
    def __init__(self, track_type="General", **kwargs):
        self.track_type = track_type
        for k, v in kwargs.items():
            setattr(self, k, v)


class MockMediaInfo:
    tracks_for_next_parse = []

    def __init__(self, tracks):
        self.tracks = tracks

    @classmethod
    def parse(cls, path):
        return cls(cls.tracks_for_next_parse)


def test_video_dates(monkeypatch, tmp_path):
    monkeypatch.setattr(extract_module, "MediaInfo", MockMediaInfo)
    monkeypatch.setattr(MockMediaInfo, "tracks_for_next_parse", [
        MockTrack(track_type="Video"),
        MockTrack(encoded_date="UTC 2021-06-05 10:00:00", recorded_date="2020-01-01 12:00:00"),
    ])
    vid = tmp_path / "clip.mp4"
    vid.touch()

    dates = MetadataExtractor().get_capture_dates(vid)

    assert dates.created == datetime(2021, 6, 5, 10, 0, 0)
    assert dates.original == datetime(2020, 1, 1, 12, 0, 0)


def test_video_without_general_track(monkeypatch, tmp_path):
    monkeypatch.setattr(extract_module, "MediaInfo", MockMediaInfo)
    monkeypatch.setattr(MockMediaInfo, "tracks_for_next_parse", [MockTrack(track_type="Audio")])
    vid = tmp_path / "clip.mov"
    vid.touch()

    with pytest.raises(MetadataExtractionError):
        MetadataExtractor().get_capture_dates(vid)


def test_image_dates(monkeypatch, tmp_path):
    monkeypatch.setattr(extract_module.exifread, "process_file", lambda f, details=False: {
        'EXIF DateTimeDigitized': '0000:00:00 00:00:00',
        'EXIF DateTimeOriginal': '2018:12:24 18:30:00',
    })
    img = tmp_path / "photo.jpg"
    img.write_bytes(b"\xff\xd8")

    dates = MetadataExtractor().get_capture_dates(img)

    assert dates.created is None
    assert dates.original == datetime(2018, 12, 24, 18, 30, 0)
    assert dates.preferred() == dates.original


def test_image_without_exif_raises(monkeypatch, tmp_path):
    monkeypatch.setattr(extract_module.exifread, "process_file", lambda f, details=False: {})
    img = tmp_path / "scan.png"
    img.write_bytes(b"not really a png")

    with pytest.raises(MetadataExtractionError):
        MetadataExtractor().get_capture_dates(img)


# --- Normalization ---

def test_normalize_rewrites_sentinel_year(state):
    state.path_index.update({
        Path("/p/a.jpg"): "0001/01",
        Path("/p/b.jpg"): "0001/11",
        Path("/p/c.jpg"): "2021/03",
    })

    assert normalize_buckets(state) == 2
    assert state.path_index == {
        Path("/p/a.jpg"): "2000/01",
        Path("/p/b.jpg"): "2000/11",
        Path("/p/c.jpg"): "2021/03",
    }
