import threading

from services.interaction_log import InteractionLog, LLMRequestType, LogStatus


def _log(interaction_log, request_type=LLMRequestType.MANUAL_J_CALCULATION, status=LogStatus.SUCCESS):
    return interaction_log.log_interaction(request_type, "prompt", "response", 12.5, status)


def test_entries_are_kept_in_order():
    interaction_log = InteractionLog()
    first = _log(interaction_log)
    second = _log(interaction_log, LLMRequestType.CHAT)

    assert interaction_log.get_logs() == [first, second]
    assert interaction_log.get_log_by_id(second.id) == second
    assert interaction_log.get_log_by_id("missing") is None


def test_filters():
    interaction_log = InteractionLog()
    _log(interaction_log)
    chat = _log(interaction_log, LLMRequestType.CHAT)
    failed = _log(interaction_log, status=LogStatus.ERROR)

    assert interaction_log.get_logs_by_request_type(LLMRequestType.CHAT) == [chat]
    assert interaction_log.get_logs_by_status(LogStatus.ERROR) == [failed]
    assert interaction_log.get_latest_logs(2) == [chat, failed]
    assert interaction_log.get_latest_logs(0) == []


def test_bounded_to_max_entries():
    interaction_log = InteractionLog(max_entries=3)
    entries = [_log(interaction_log) for _ in range(5)]

    assert interaction_log.get_logs() == entries[-3:]


def test_raw_entries_are_stamped():
    interaction_log = InteractionLog()

    entry = interaction_log.add_raw({"level": "info", "message": "client booted"})

    assert entry["message"] == "client booted"
    assert entry["id"].startswith("log_")
    assert "timestamp" in entry
    assert interaction_log.get_raw() == [entry]


def test_clear():
    interaction_log = InteractionLog()
    _log(interaction_log)
    interaction_log.add_raw({"message": "x"})

    interaction_log.clear()

    assert interaction_log.get_logs() == []
    assert interaction_log.get_raw() == []


def test_concurrent_writers():
    interaction_log = InteractionLog()
    threads = [threading.Thread(target=lambda: [_log(interaction_log) for _ in range(50)]) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(interaction_log.get_logs()) == 200
