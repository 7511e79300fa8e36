from asclepio.models import NoteKind
from asclepio.notes import ActiveNotePolicy, NoteModel


def test_tips_go_straight_to_archive_in_order():
    model = NoteModel()
    for text in ["uno", "dos", "tres"]:
        model.add_tip(text)
    assert [n.content for n in model.archived] == ["uno", "dos", "tres"]
    assert all(n.type is NoteKind.TIP for n in model.archived)
    assert model.active is None


def test_new_card_replaces_active_without_archiving():
    model = NoteModel()
    first = model.set_active_qa("¿Qué es X?", "Y")
    second = model.set_active_context("Tema", "Explicación")
    assert model.active is second
    assert first not in model.archived
    assert model.archived == []


def test_archive_policy_keeps_superseded_card():
    model = NoteModel(ActiveNotePolicy.ARCHIVE)
    first = model.set_active_qa("¿Qué es X?", "Y")
    second = model.set_active_context("Tema", "Explicación")
    assert model.active is second
    assert model.archived == [first]


def test_archive_active_moves_card_to_end():
    model = NoteModel()
    model.add_tip("tip")
    card = model.set_active_qa("P", "R")
    assert model.archive_active() is card
    assert model.active is None
    assert [n.id for n in model.archived][-1] == card.id


def test_archive_active_without_card_is_noop():
    model = NoteModel()
    model.append_transcript("Hola")
    model.add_tip("tip")
    before = (model.transcript, model.archived)
    assert model.archive_active() is None
    assert (model.transcript, model.archived) == before


def test_transcript_concatenation_and_turn_boundaries():
    model = NoteModel()
    model.append_transcript("Hola")
    model.append_turn_boundary()
    model.append_turn_boundary()
    model.append_transcript("mundo")
    assert model.transcript == "Hola  mundo"


def test_snapshot_appends_active_last_and_reset_clears():
    model = NoteModel()
    tip = model.add_tip("tip")
    card = model.set_active_context("Tema", "Explicación")
    snapshot = model.snapshot()
    assert snapshot.notes == (tip, card)
    model.reset()
    assert model.transcript == ""
    assert model.archived == []
    assert model.active is None


def test_note_ids_are_unique():
    model = NoteModel()
    ids = {model.add_tip(str(i)).id for i in range(50)}
    assert len(ids) == 50
