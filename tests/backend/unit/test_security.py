from gemcasino.backend.security import generate_session_id


def test_generate_session_id_returns_non_empty_random_value() -> None:
    first = generate_session_id()
    second = generate_session_id()

    assert first
    assert second
    assert first != second
