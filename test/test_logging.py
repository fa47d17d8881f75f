import json

from gasoracle.core.logger import get_logger, configure_logging, GAS_SAMPLES_WRITTEN


def test_json_log_lines_and_prometheus(capsys):
    configure_logging()
    log = get_logger("test")
    log.info("UNIT_TEST_EVENT", data=1)
    line = capsys.readouterr().out.strip().splitlines()[-1]
    payload = json.loads(line)
    assert payload["event"] == "UNIT_TEST_EVENT"
    assert payload["data"] == 1
    assert payload["level"] == "info"
    assert "timestamp" in payload

    c = GAS_SAMPLES_WRITTEN.labels("unit")
    initial = c._value.get()
    c.inc()
    assert c._value.get() == initial + 1
