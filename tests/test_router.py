import asyncio

from zakat_chat.errors import OracleFailure
from zakat_chat.models import Attachment, ConversationState, FunctionCall, OracleResponse
from zakat_chat.router import FALLBACK_ANSWER, TurnRouter
from zakat_chat.state_machine import STORE_FAILURE_PREFIX
from zakat_chat.transcript import Author


async def test_end_to_end_standard_operator_report(make_router, store, oracle, volunteer):
    router = make_router(volunteer)
    previous_max = max(r.id for r in store.zakat_repository.get_all())

    messages = await router.handle_utterance("tambah laporan zakat")
    assert messages[0].author is Author.USER
    assert "nama muzakki" in messages[-1].text

    messages = await router.handle_utterance("Budi")
    assert "jenis zakat" in messages[-1].text

    await router.handle_utterance("fitrah")
    assert router.context.collected_fields["zakat_type"] == "Fitrah"

    messages = await router.handle_utterance("45000")
    assert "bukti transfer" in messages[-1].text
    assert router.context.awaiting_attachment

    messages = router.submit_attachment(Attachment(name="b.png", size=200 * 1024))
    summary = messages[-1].text
    assert router.context.active_intent is ConversationState.CONFIRMING_ADD
    assert "Dicatat oleh: R001" in summary
    assert "- Kode Relawan:" not in summary

    await router.handle_utterance("ya")

    report = store.zakat_repository.get_by_id(previous_max + 1)
    assert report.volunteer_code == "R001"
    assert report.muzakki_name == "Budi"
    assert report.amount == 45000
    assert report.proof_of_transfer == "b.png"
    assert router.context.is_idle
    assert oracle.queries == []


async def test_text_is_rejected_while_waiting_for_attachment(make_router, volunteer):
    router = make_router(volunteer)
    for text in ("tambah laporan", "Budi", "Fitrah", "45000"):
        await router.handle_utterance(text)
    before = len(router.transcript)

    messages = await router.handle_utterance("b.png")

    assert messages == []
    assert len(router.transcript) == before
    assert not router.accepts_text


async def test_blank_utterance_is_ignored(make_router, volunteer):
    router = make_router(volunteer)
    assert await router.handle_utterance("   ") == []
    assert len(router.transcript) == 0


async def test_busy_router_drops_second_utterance(make_router, oracle, volunteer):
    gate = asyncio.Event()

    class SlowOracle(type(oracle)):
        async def query(self, text):
            await gate.wait()
            return OracleResponse(answer_text="Zakat fitrah wajib bagi setiap muslim.")

    router = TurnRouter(make_router(volunteer).state_machine, SlowOracle())
    first = asyncio.create_task(router.handle_utterance("apa itu zakat fitrah?"))
    await asyncio.sleep(0)
    assert router.busy

    dropped = await router.handle_utterance("tambah laporan zakat")
    gate.set()
    messages = await first

    assert dropped == []
    assert not router.busy
    assert messages[-1].text == "Zakat fitrah wajib bagi setiap muslim."
    assert router.context.is_idle


async def test_oracle_answer_is_surfaced_verbatim(make_router, oracle, volunteer):
    oracle.push(OracleResponse(answer_text="Mustahik ada delapan golongan."))
    router = make_router(volunteer)

    messages = await router.handle_utterance("siapa yang berhak menerima zakat?")

    assert messages[-1].text == "Mustahik ada delapan golongan."
    assert oracle.queries == ["siapa yang berhak menerima zakat?"]


async def test_empty_oracle_response_uses_fallback(make_router, oracle, volunteer):
    oracle.push(OracleResponse())
    router = make_router(volunteer)

    messages = await router.handle_utterance("halo")

    assert messages[-1].text == FALLBACK_ANSWER


async def test_oracle_failure_is_reported_and_router_recovers(make_router, oracle, volunteer):
    oracle.push(OracleFailure("Gagal mendapatkan respon dari model AI."))
    router = make_router(volunteer)

    messages = await router.handle_utterance("halo")

    assert messages[-1].text == "Error: Gagal mendapatkan respon dari model AI."
    assert router.context.is_idle
    assert not router.busy

    messages = await router.handle_utterance("tambah laporan zakat")
    assert router.context.active_intent is ConversationState.COLLECTING_ZAKAT


async def test_list_reports_via_oracle_is_role_partitioned(make_router, oracle, admin, volunteer):
    call = FunctionCall(name="get_all_zakat", args={})
    oracle.push(OracleResponse(function_calls=[call]))
    oracle.push(OracleResponse(function_calls=[call]))

    admin_rows = (await make_router(admin).handle_utterance("tampilkan semua laporan"))[-1].rows()
    own_rows = (await make_router(volunteer).handle_utterance("tampilkan semua laporan"))[-1].rows()

    assert {row["volunteer_code"] for row in admin_rows} == {"R001", "R002"}
    assert {row["volunteer_code"] for row in own_rows} == {"R001"}


async def test_only_first_function_call_is_honored(make_router, oracle, store, admin):
    oracle.push(OracleResponse(function_calls=[
        FunctionCall(name="update_zakat", args={"id": 1, "amount": 60000}),
        FunctionCall(name="delete_zakat", args={"id": 1}),
    ]))
    router = make_router(admin)

    messages = await router.handle_utterance("ubah jumlah laporan 1 jadi 60000")

    assert messages[-1].is_structured
    assert store.zakat_repository.get_by_id(1).amount == 60000
    assert router.context.is_idle


async def test_oracle_add_call_starts_flow_with_own_code(make_router, oracle, volunteer):
    oracle.push(OracleResponse(function_calls=[
        FunctionCall(name="add_zakat", args={"volunteer_code": "R002", "muzakki_name": "Budi"}),
    ]))
    router = make_router(volunteer)

    await router.handle_utterance("saya mau input donasi dari Budi")

    assert router.context.active_intent is ConversationState.COLLECTING_ZAKAT
    assert router.context.collected_fields == {"volunteer_code": "R001", "muzakki_name": "Budi"}


async def test_oracle_delete_needs_confirmation(make_router, oracle, store, admin):
    oracle.push(OracleResponse(function_calls=[FunctionCall(name="delete_zakat", args={"id": 1})]))
    router = make_router(admin)

    await router.handle_utterance("hapus laporan nomor 1")
    assert router.context.active_intent is ConversationState.CONFIRMING_DELETE
    assert store.zakat_repository.get_by_id(1) is not None

    await router.handle_utterance("ya")
    assert store.zakat_repository.get_by_id(1) is None
    assert router.context.pending_operation is None


async def test_delete_of_missing_report_via_router(make_router, oracle, store, admin):
    oracle.push(OracleResponse(function_calls=[FunctionCall(name="delete_zakat", args={"id": 99})]))
    router = make_router(admin)
    before = store.zakat_repository.count()

    await router.handle_utterance("hapus laporan 99")
    messages = await router.handle_utterance("ya")

    assert "tidak ditemukan" in messages[-1].text
    assert store.zakat_repository.count() == before


async def test_unsupported_oracle_call_is_reported(make_router, oracle, volunteer):
    oracle.push(OracleResponse(function_calls=[FunctionCall(name="export_pdf", args={})]))
    router = make_router(volunteer)

    messages = await router.handle_utterance("ekspor ke pdf")

    assert messages[-1].text == "Maaf, saya tidak tahu cara melakukan tindakan: export_pdf."


async def test_empty_listing_message(make_router, oracle, store):
    identity = store.authenticate("R002", "relawan002")
    store.zakat_repository.delete(2)
    oracle.push(OracleResponse(function_calls=[FunctionCall(name="get_all_zakat", args={})]))
    router = make_router(identity)

    messages = await router.handle_utterance("lihat laporan saya")

    assert messages[-1].text == "Tidak ada data zakat yang ditemukan."
    assert not messages[-1].is_structured


async def test_admin_keyword_starts_operator_flow(make_router, oracle, admin):
    router = make_router(admin)

    await router.handle_utterance("tambah relawan baru")

    assert router.context.active_intent is ConversationState.COLLECTING_USER
    assert oracle.queries == []


async def test_operator_keyword_is_ignored_for_standard_role(make_router, oracle, volunteer):
    oracle.push(OracleResponse(answer_text="Maaf, fitur itu khusus admin."))
    router = make_router(volunteer)

    await router.handle_utterance("tambah relawan baru")

    assert router.context.is_idle
    assert oracle.queries == ["tambah relawan baru"]


async def test_admin_operator_keyword_wins_over_report_noun(make_router, oracle, admin):
    router = make_router(admin)

    await router.handle_utterance("tambah relawan zakat")

    assert router.context.active_intent is ConversationState.COLLECTING_USER
    assert oracle.queries == []


async def test_oracle_add_user_call_seeds_operator_flow_for_admin(make_router, oracle, admin):
    oracle.push(OracleResponse(function_calls=[
        FunctionCall(name="add_user", args={"volunteer_code": "R050"}),
    ]))
    router = make_router(admin)

    await router.handle_utterance("daftarkan R050 sebagai anggota tim")

    assert router.context.active_intent is ConversationState.COLLECTING_USER
    assert router.context.collected_fields == {"volunteer_code": "R050"}


async def test_oracle_add_user_call_is_forbidden_for_standard_role(make_router, oracle, store, volunteer):
    oracle.push(OracleResponse(function_calls=[
        FunctionCall(name="add_user", args={"volunteer_code": "R050"}),
    ]))
    router = make_router(volunteer)

    messages = await router.handle_utterance("daftarkan R050 sebagai anggota tim")

    assert router.context.is_idle
    assert messages[-1].text.startswith(STORE_FAILURE_PREFIX)
    assert "Hanya admin" in messages[-1].text
    assert store.operator_repository.get_by_code("R050") is None


async def test_attachment_outside_gate_is_dropped(make_router, volunteer):
    router = make_router(volunteer)
    assert router.submit_attachment(Attachment(name="b.png", size=10)) == []
    assert len(router.transcript) == 0


async def test_unexpected_error_resets_and_clears_busy(make_router, oracle, volunteer):
    router = make_router(volunteer)
    await router.handle_utterance("tambah laporan zakat")

    def explode(text):
        raise RuntimeError("boom")

    router.state_machine.process_input = explode
    messages = await router.handle_utterance("Budi")

    assert messages[-1].text.startswith("Error:")
    assert router.context.is_idle
    assert not router.busy
