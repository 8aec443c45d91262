import io

from src.forcecheck.reader import EventDrivenConfigReader, EventKind, ParseEvent, ReaderState


def _event(kind):
    return ParseEvent(kind)


def _recording_reader(keys):
    seen = []

    def store(key):
        return lambda text: seen.append((key, text))

    return EventDrivenConfigReader({key: store(key) for key in keys}), seen


def test_epsilon_event_sequence_reaches_stop():
    reader, seen = _recording_reader(["epsilon"])
    events = [
        _event(EventKind.STREAM_START),
        _event(EventKind.DOCUMENT_START),
        _event(EventKind.MAPPING_START),
        ParseEvent.scalar("epsilon"),
        ParseEvent.scalar("1e-13"),
        _event(EventKind.MAPPING_END),
    ]
    result = reader.parse_events(events)
    assert result.ok
    assert result.state is ReaderState.STOP
    assert seen == [("epsilon", "1e-13")]


def test_state_transitions_step_by_step():
    reader, _ = _recording_reader(["natoms"])
    assert reader.consume(_event(EventKind.STREAM_START)) is ReaderState.START
    assert reader.consume(_event(EventKind.MAPPING_START)) is ReaderState.ACCEPT_KEY
    assert reader.consume(ParseEvent.scalar("natoms")) is ReaderState.ACCEPT_VALUE
    assert reader.consume(ParseEvent.scalar("4")) is ReaderState.ACCEPT_KEY
    assert reader.consume(_event(EventKind.MAPPING_END)) is ReaderState.STOP


def test_stream_end_at_start_stops_cleanly():
    reader, seen = _recording_reader(["epsilon"])
    result = reader.parse_events([_event(EventKind.STREAM_START), _event(EventKind.STREAM_END)])
    assert result.ok
    assert seen == []


def test_unknown_key_is_ignored_without_failing():
    reader, seen = _recording_reader(["epsilon"])
    result = reader.parse_stream("bogus: 1\nepsilon: 2.0e-12\n")
    assert result.ok
    assert result.ignored == ("bogus",)
    assert seen == [("epsilon", "2.0e-12")]


def test_nested_value_moves_to_error():
    reader, seen = _recording_reader(["prerequisites"])
    result = reader.parse_stream("prerequisites:\n  - atom full\n")
    assert not result.ok
    assert result.state is ReaderState.ERROR
    assert "sequence-start" in result.message
    assert seen == []


def test_nested_mapping_value_moves_to_error():
    reader, _ = _recording_reader(["epsilon"])
    result = reader.parse_stream("epsilon:\n  inner: 1\n")
    assert result.state is ReaderState.ERROR


def test_bare_scalar_document_moves_to_error():
    reader, _ = _recording_reader(["epsilon"])
    result = reader.parse_stream("just a scalar\n")
    assert not result.ok
    assert result.state is ReaderState.ERROR


def test_truncated_event_stream_is_a_failure():
    reader, _ = _recording_reader(["epsilon"])
    result = reader.parse_events([_event(EventKind.MAPPING_START), ParseEvent.scalar("epsilon")])
    assert not result.ok
    assert result.state is ReaderState.ERROR


def test_tokenizer_error_stops_with_failure():
    reader, seen = _recording_reader(["epsilon", "natoms"])
    result = reader.parse_stream(io.StringIO("epsilon: 1e-13\nnatoms: 'unterminated\n"))
    assert not result.ok
    assert result.state is ReaderState.STOP
    assert result.message.startswith("tokenizer error")
    assert ("epsilon", "1e-13") in seen


def test_literal_block_text_is_passed_verbatim():
    reader, seen = _recording_reader(["pre_commands"])
    result = reader.parse_stream("pre_commands: |\n  variable a index 1\n  units real\n")
    assert result.ok
    assert seen == [("pre_commands", "variable a index 1\nunits real\n")]


def test_missing_file_is_reported(tmp_path):
    reader, _ = _recording_reader(["epsilon"])
    result = reader.parse_file(tmp_path / "absent.yaml")
    assert not result.ok
    assert "cannot open yaml file" in result.message


def test_reader_can_be_reused_after_failure():
    reader, seen = _recording_reader(["epsilon"])
    assert not reader.parse_stream("- 1\n").ok
    assert reader.parse_stream("epsilon: 3\n").ok
    assert seen == [("epsilon", "3")]
    assert reader.keys == ("epsilon",)
