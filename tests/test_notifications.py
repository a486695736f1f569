import pytest

from clinica.core.notifications import NotificationCenter


def test_subscribers_get_current_list_immediately():
    center = NotificationCenter()
    center.info("Bienvenido")
    received = []

    center.subscribe(received.append)

    assert [n.message for n in received[0]] == ["Bienvenido"]


def test_publish_dismiss_and_clear():
    center = NotificationCenter()
    received = []
    unsubscribe = center.subscribe(received.append)

    saved = center.success("Paciente guardado")
    center.error("No se pudo guardar el turno")
    assert [n.kind for n in center.snapshot()] == ["success", "error"]
    assert len(received) == 3

    assert center.dismiss(saved)
    assert not center.dismiss(saved)
    assert [n.message for n in received[-1]] == ["No se pudo guardar el turno"]

    unsubscribe()
    center.clear()
    assert center.snapshot() == []
    assert len(received[-1]) == 1


def test_failing_listener_does_not_block_others():
    center = NotificationCenter()
    received = []

    def broken(_):
        raise RuntimeError("listener roto")

    center.subscribe(lambda items: None)
    center._listeners.append((broken, None))
    center.subscribe(received.append)
    center.warning("Atención")

    assert received[-1][0].message == "Atención"


def test_unknown_kind_is_rejected():
    with pytest.raises(ValueError):
        NotificationCenter().publish("hola", kind="debug")


def test_feed_is_capped_oldest_first():
    center = NotificationCenter(max_items=3)
    for n in range(30):
        center.info(f"aviso {n}")

    assert [n.message for n in center.snapshot()] == ["aviso 27", "aviso 28", "aviso 29"]


def test_feeds_are_scoped_by_owner():
    center = NotificationCenter()
    ana = center.for_owner("ana")
    juan = center.for_owner("juan")
    heard_by_juan = []
    juan.subscribe(heard_by_juan.append)

    saved = ana.success("Paciente guardado")

    assert [n.message for n in ana.snapshot()] == ["Paciente guardado"]
    assert juan.snapshot() == []
    assert heard_by_juan == [[]]
    assert not juan.dismiss(saved)
    assert ana.dismiss(saved)

    juan.info("Hola")
    ana.clear()
    assert [n.message for n in juan.snapshot()] == ["Hola"]


def test_reset_drops_every_feed():
    center = NotificationCenter()
    center.for_owner("ana").info("uno")
    center.info("dos")
    center.reset()
    assert center.snapshot() == []
    assert center.snapshot("ana") == []
