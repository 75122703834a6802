import pytest

import course_extract.orchestration.runner as runner
from course_extract.bundle.ash0 import Ash0Decoder
from course_extract.bundle.repackager import ENTRY_NAMES, read_course_archive
from course_extract.dto import DecodeResult, CaptureRecord
from course_extract.errors import BundleFormatError, RecordIdentifierError, SegmentDecodeError
from course_extract.orchestration.runner import convert_record, derive_identifier, run_capture

from helpers import COURSE_PARTS, ListSource, bundle, course_payload, response


class _Ticks:
    def __init__(self):
        self.n = 0

    def update(self, n=1):
        self.n += n


def test_convert_record_writes_archive(cfg, decoder):
    outcome = convert_record(response("ABCD-1", bundle(*COURSE_PARTS)), decoder=decoder, cfg=cfg)

    assert outcome.status == "written"
    assert outcome.output_path == cfg.output_dir / "ABCD-1.tar.zst"
    entries = read_course_archive(outcome.output_path)
    assert [e.name for e in entries] == list(ENTRY_NAMES)
    assert [e.data for e in entries] == list(COURSE_PARTS)


def test_real_ash0_payload_end_to_end(cfg):
    outcome = convert_record(response("ABCD-2", course_payload(COURSE_PARTS)), decoder=Ash0Decoder(), cfg=cfg)

    assert outcome.status == "written"
    assert [e.data for e in read_course_archive(outcome.output_path)] == list(COURSE_PARTS)


@pytest.mark.parametrize("count", [3, 5])
def test_wrong_segment_count_creates_no_archive(cfg, decoder, count):
    record = response("BAD", bundle(*[b"x"] * count))

    with pytest.raises(BundleFormatError):
        convert_record(record, decoder=decoder, cfg=cfg)

    assert list(cfg.output_dir.iterdir()) == []


def test_no_marker_creates_no_archive(cfg, decoder):
    summary = run_capture(ListSource([response("NONE", b"<html>gone</html>")]), decoder=decoder, cfg=cfg)

    assert summary.failed == 1
    assert summary.written == 0
    assert list(cfg.output_dir.iterdir()) == []
    assert decoder.calls == []


def test_decoder_failure_names_the_slot(cfg, decoder):
    class FailSecond:
        def decode(self, data):
            if data.endswith(COURSE_PARTS[1]):
                return DecodeResult.failure("corrupt")
            return DecodeResult.success(data[4:])

    with pytest.raises(SegmentDecodeError) as exc:
        convert_record(response("X", bundle(*COURSE_PARTS)), decoder=FailSecond(), cfg=cfg)
    assert exc.value.slot == "course_data.cdt"


def test_empty_decode_is_a_failure(cfg, decoder):
    parts = list(COURSE_PARTS)
    parts[3] = b""
    with pytest.raises(SegmentDecodeError) as exc:
        convert_record(response("X", bundle(*parts)), decoder=decoder, cfg=cfg)
    assert exc.value.slot == "thumbnail1.tnl"
    assert exc.value.reason == "empty output"


@pytest.mark.parametrize("uri", ["https://levels.example.net/courses/", "https://levels.example.net", "http://h/a/.."])
def test_unusable_identifier(uri):
    record = CaptureRecord(record_type="response", target_uri=uri, payload=b"")
    with pytest.raises(RecordIdentifierError):
        derive_identifier(record)


def test_identifier_ignores_query():
    record = CaptureRecord(record_type="response", target_uri="https://h/api/courses/ABCD-1?lang=en", payload=b"")
    assert derive_identifier(record) == "ABCD-1"


def test_non_response_records_are_skipped_silently(cfg, decoder):
    source = ListSource([
        response("REQ", bundle(*COURSE_PARTS), record_type="request"),
        response("META", bundle(*COURSE_PARTS), record_type="metadata"),
        response("OK", bundle(*COURSE_PARTS)),
    ])
    ticks = _Ticks()

    summary = run_capture(source, decoder=decoder, cfg=cfg, progress=ticks)

    assert summary.attempted == 1
    assert summary.written == 1
    assert ticks.n == 1
    assert sorted(p.name for p in cfg.output_dir.iterdir()) == ["OK.tar.zst"]
    assert len(decoder.calls) == 4


def test_non_200_responses_are_skipped(cfg, decoder):
    summary = run_capture(ListSource([response("GONE", bundle(*COURSE_PARTS), status=404)]), decoder=decoder, cfg=cfg)

    assert summary.attempted == 1
    assert summary.skipped == 1
    assert list(cfg.output_dir.iterdir()) == []


def test_status_check_can_be_disabled(cfg, decoder):
    lenient = cfg.model_copy(update={"require_http_ok": False})
    summary = run_capture(ListSource([response("R", bundle(*COURSE_PARTS), status=206)]), decoder=decoder, cfg=lenient)
    assert summary.written == 1


def test_bad_record_does_not_stop_the_run(cfg, decoder):
    source = ListSource([
        response("A", bundle(*COURSE_PARTS)),
        response("B", bundle(b"only", b"three", b"parts")),
        response("C", bundle(*COURSE_PARTS)),
    ])
    ticks = _Ticks()

    summary = run_capture(source, decoder=decoder, cfg=cfg, progress=ticks)

    assert (summary.attempted, summary.written, summary.failed) == (3, 2, 1)
    assert ticks.n == 3
    assert summary.failures[0].identifier == "B"
    assert sorted(p.name for p in cfg.output_dir.iterdir()) == ["A.tar.zst", "C.tar.zst"]


def _flaky_writer(monkeypatch, fail_for):
    real = runner.write_course_archive

    def write(path, entries, **kwargs):
        if path.name.startswith(fail_for):
            raise OSError("no space left on device")
        return real(path, entries, **kwargs)

    monkeypatch.setattr(runner, "write_course_archive", write)


def test_io_error_halts_by_default(cfg, decoder, monkeypatch):
    _flaky_writer(monkeypatch, "B")
    source = ListSource([response(n, bundle(*COURSE_PARTS)) for n in "ABC"])

    with pytest.raises(OSError, match="no space"):
        run_capture(source, decoder=decoder, cfg=cfg)

    assert sorted(p.name for p in cfg.output_dir.iterdir()) == ["A.tar.zst"]


def test_io_error_can_continue(cfg, decoder, monkeypatch):
    _flaky_writer(monkeypatch, "B")
    source = ListSource([response(n, bundle(*COURSE_PARTS)) for n in "ABC"])
    lenient = cfg.model_copy(update={"on_io_error": "continue"})

    summary = run_capture(source, decoder=decoder, cfg=lenient)

    assert (summary.written, summary.failed) == (2, 1)
    assert summary.failures[0].detail.startswith("I/O error")


def test_running_twice_is_idempotent(cfg, decoder):
    source = ListSource([response(n, bundle(*COURSE_PARTS)) for n in ("A", "B")])

    run_capture(source, decoder=decoder, cfg=cfg)
    first = {p.name: p.read_bytes() for p in cfg.output_dir.iterdir()}
    run_capture(source, decoder=decoder, cfg=cfg)
    second = {p.name: p.read_bytes() for p in cfg.output_dir.iterdir()}

    assert first == second
    assert sorted(first) == ["A.tar.zst", "B.tar.zst"]


def test_verify_output(cfg, decoder):
    checked = cfg.model_copy(update={"verify_output": True})
    summary = run_capture(ListSource([response("V", bundle(*COURSE_PARTS))]), decoder=decoder, cfg=checked)
    assert summary.written == 1


def test_parallel_run_matches_sequential(cfg, decoder):
    names = [f"C{i:03d}" for i in range(20)]
    source = ListSource(
        [response(n, bundle(*COURSE_PARTS)) for n in names]
        + [response("BROKEN", b"nothing here")]
    )
    ticks = _Ticks()
    parallel = cfg.model_copy(update={"workers": 4})

    summary = run_capture(source, decoder=decoder, cfg=parallel, progress=ticks)

    assert (summary.attempted, summary.written, summary.failed) == (21, 20, 1)
    assert ticks.n == 21
    assert sorted(p.name for p in cfg.output_dir.iterdir()) == [f"{n}.tar.zst" for n in names]


def test_parallel_same_identifier_last_record_wins(cfg, decoder):
    first = list(COURSE_PARTS)
    last = [p + b"-v2" for p in COURSE_PARTS]
    source = ListSource([
        response("DUP", bundle(*first)),
        response("OTHER", bundle(*first)),
        response("DUP", bundle(*last)),
    ])

    summary = run_capture(source, decoder=decoder, cfg=cfg.model_copy(update={"workers": 3}), progress=None)

    assert summary.written == 3
    assert [e.data for e in read_course_archive(cfg.output_dir / "DUP.tar.zst")] == last


def test_parallel_io_error_halts(cfg, decoder, monkeypatch):
    _flaky_writer(monkeypatch, "C005")
    source = ListSource([response(f"C{i:03d}", bundle(*COURSE_PARTS)) for i in range(10)])

    with pytest.raises(OSError):
        run_capture(source, decoder=decoder, cfg=cfg.model_copy(update={"workers": 2}))


def test_identifier_is_percent_decoded():
    record = CaptureRecord(record_type="response", target_uri="https://h/api/courses/AB%20CD", payload=b"")
    assert derive_identifier(record) == "AB CD"


def test_overlong_identifier_is_rejected():
    record = CaptureRecord(record_type="response", target_uri="https://h/c/" + "X" * 300, payload=b"")
    with pytest.raises(RecordIdentifierError, match="too long"):
        derive_identifier(record)


def test_overlong_identifier_does_not_stop_the_run(cfg, decoder):
    source = ListSource([
        response("X" * 300, bundle(*COURSE_PARTS)),
        response("OK", bundle(*COURSE_PARTS)),
    ])

    summary = run_capture(source, decoder=decoder, cfg=cfg)

    assert (summary.attempted, summary.written, summary.failed) == (2, 1, 1)
    assert sorted(p.name for p in cfg.output_dir.iterdir()) == ["OK.tar.zst"]
