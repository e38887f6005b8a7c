from refood.services import access_service

from conftest import make_attore, make_centro


def test_non_admin_limited_to_associations(utente_sociale, centro_sociale, centro_distribuzione):
    assert access_service.operable_center_ids(utente_sociale) == [centro_sociale.id]
    assert access_service.can_operate_on(utente_sociale, centro_sociale.id)
    assert not access_service.can_operate_on(utente_sociale, centro_distribuzione.id)


def test_admin_gets_unclaimed_but_not_foreign_centers(admin, centro_distribuzione, utente_sociale, centro_sociale):
    orfano = make_centro("Banco Orfano", "Distribuzione")

    ids = access_service.operable_center_ids(admin)
    assert ids == sorted([centro_distribuzione.id, orfano.id])
    assert not access_service.can_operate_on(admin, centro_sociale.id)


def test_unassociated_non_admin_sees_nothing(db_session, password_hash):
    make_centro("Banco Orfano", "Distribuzione")
    solitario = make_attore("solo@refood.test", "Operatore", password_hash)
    assert access_service.operable_center_ids(solitario) == []
    assert access_service.associated_center_ids(solitario.id) == []
