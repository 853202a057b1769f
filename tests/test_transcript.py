from zakat_chat.transcript import Author, Transcript


def test_messages_are_ordered_with_unique_ids():
    transcript = Transcript()
    first = transcript.add_user("tambah laporan zakat")
    second = transcript.add_system("Baik, siapa nama muzakki?")

    assert [m.id for m in transcript] == [first.id, second.id]
    assert first.id != second.id
    assert first.author is Author.USER
    assert second.author is Author.SYSTEM
    assert transcript.since(1) == [second]


def test_structured_rows():
    transcript = Transcript()
    table = transcript.add_system('[{"id": 1, "amount": 45000}]', is_structured=True)
    single = transcript.add_system('{"id": 2}', is_structured=True)

    assert table.rows() == [{"id": 1, "amount": 45000}]
    assert single.rows() == [{"id": 2}]


def test_unparseable_structured_text_falls_back():
    transcript = Transcript()
    broken = transcript.add_system("not json", is_structured=True)
    scalar = transcript.add_system("42", is_structured=True)
    plain = transcript.add_system('[{"id": 1}]')

    assert broken.rows() is None
    assert scalar.rows() is None
    assert plain.rows() is None


def test_to_dict_matches_wire_shape():
    message = Transcript().add_system("halo")
    assert message.to_dict() == {"id": "1", "author": "system", "text": "halo", "is_structured": False}
