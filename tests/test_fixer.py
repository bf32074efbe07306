import asyncio
import os

from secwatch.contracts import FixPayload
from secwatch.engine import build_engine
from secwatch.tools.fixer import STALE_MESSAGE, FixApplier

SOURCE = (
    'const password = "mysecretpassword";\n'
    "const result = eval(userInput);\n"
    'console.log("token", token);\n'
    "const digest = crypto.createHash('md5');\n"
    '// api_key = "abcdef123456"\n'
)


def _payload(path, original, replacement, alert_id="alert-1"):
    return FixPayload(
        alert_id=alert_id,
        file_path=str(path) if path is not None else None,
        original_content=original,
        replacement_content=replacement,
    )


def test_apply_fix_writes_replacement(tmp_path):
    target = tmp_path / "app.js"
    target.write_bytes(b"old content")

    response = asyncio.run(FixApplier().apply_fix(_payload(target, "old content", "new content")))

    assert response.success is True
    assert response.error is None
    assert response.alert_id == "alert-1"
    assert response.file_path == str(target.resolve())
    assert target.read_bytes() == b"new content"


def test_stale_baseline_leaves_file_untouched(tmp_path):
    target = tmp_path / "app.js"
    target.write_bytes(b"edited since scan")

    response = asyncio.run(FixApplier().apply_fix(_payload(target, "what was scanned", "fixed")))

    assert response.success is False
    assert response.code == "stale"
    assert response.error == STALE_MESSAGE
    assert target.read_bytes() == b"edited since scan"


def test_missing_path_is_a_validation_error():
    response = asyncio.run(FixApplier().apply_fix(_payload(None, "a", "b")))

    assert response.success is False
    assert response.code == "validation"
    assert response.error == "Invalid file path provided"
    assert response.file_path == "unknown"


def test_missing_replacement_is_a_validation_error(tmp_path):
    target = tmp_path / "app.js"
    target.write_bytes(b"a")

    response = asyncio.run(FixApplier().apply_fix(_payload(target, "a", None)))

    assert response.code == "validation"
    assert response.error == "Invalid replacement content provided"
    assert target.read_bytes() == b"a"


def test_empty_replacement_is_allowed(tmp_path):
    target = tmp_path / "app.js"
    target.write_bytes(b"a")

    response = asyncio.run(FixApplier().apply_fix(_payload(target, "a", "")))

    assert response.success is True
    assert target.read_bytes() == b""


def test_missing_file_is_an_io_error(tmp_path):
    response = asyncio.run(FixApplier().apply_fix(_payload(tmp_path / "gone.js", "a", "b")))

    assert response.success is False
    assert response.code == "io"
    assert response.error == "File does not exist or is not accessible"


def test_validate_fix_never_writes(tmp_path):
    target = tmp_path / "app.js"
    target.write_bytes(b"a")
    applier = FixApplier()

    ok = asyncio.run(applier.validate_fix(_payload(target, "a", "b")))
    stale = asyncio.run(applier.validate_fix(_payload(target, "x", "b")))

    assert ok.valid is True
    assert stale.valid is False
    assert stale.code == "stale"
    assert target.read_bytes() == b"a"


def test_line_endings_are_preserved(tmp_path):
    target = tmp_path / "app.js"
    original = 'const password = "abc123";\r\nconst x = 1;\r\n'
    target.write_bytes(original.encode("utf-8"))
    alert = build_engine().scan(original, str(target)).alerts[0]

    response = asyncio.run(FixApplier().apply_fix(_payload(target, alert.current_content, alert.proposed_fix)))

    assert response.success is True
    assert target.read_bytes() == b'const password = "********";\r\nconst x = 1;\r\n'


def test_every_proposed_fix_applies_cleanly(tmp_path):
    target = tmp_path / "app.js"
    alerts = build_engine().scan(SOURCE, str(target)).alerts
    assert len(alerts) == 5

    applier = FixApplier()
    for alert in alerts:
        target.write_bytes(alert.current_content.encode("utf-8"))
        response = asyncio.run(
            applier.apply_fix(_payload(target, alert.current_content, alert.proposed_fix, alert.id))
        )
        assert response.success is True, alert.rule_id
        assert target.read_bytes().decode("utf-8") == alert.proposed_fix


def test_second_fix_on_old_baseline_is_stale(tmp_path):
    target = tmp_path / "app.js"
    target.write_bytes(SOURCE.encode("utf-8"))
    first, second = build_engine().scan(SOURCE, str(target)).alerts[:2]
    applier = FixApplier()

    assert asyncio.run(applier.apply_fix(_payload(target, first.current_content, first.proposed_fix))).success
    response = asyncio.run(applier.apply_fix(_payload(target, second.current_content, second.proposed_fix)))

    assert response.code == "stale"
    assert target.read_bytes().decode("utf-8") == first.proposed_fix


def test_unexpanded_home_path_is_taken_literally():
    response = asyncio.run(FixApplier().apply_fix(_payload("~nosuchuser_zz/app.js", "x", "y")))

    assert response.success is False
    assert response.code == "io"
    assert response.error == "File does not exist or is not accessible"


def test_symlink_loop_is_rejected_not_raised(tmp_path):
    first = tmp_path / "a.js"
    second = tmp_path / "b.js"
    os.symlink(second, first)
    os.symlink(first, second)
    applier = FixApplier()

    response = asyncio.run(applier.apply_fix(_payload(first, "x", "y")))
    validation = asyncio.run(applier.validate_fix(_payload(first, "x", "y")))

    assert response.success is False
    assert response.code in ("validation", "io")
    assert validation.valid is False
    assert validation.code in ("validation", "io")
