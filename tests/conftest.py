# tests/conftest.py
import itertools
import pytest

from domain.models.conversation import Message, Sender, UserProfile

@pytest.fixture
def profile():
    """Onboarded user of a small bakery"""
    return UserProfile(
        user_name="Ana Souza",
        user_role="Sócia",
        company_name="Padaria Aurora",
        company_field="Alimentação",
        company_size="Pequena",
        company_stage="3 anos",
        main_product="Bolos artesanais",
        target_audience="Famílias do bairro",
        main_challenge="aumentar as vendas"
    )

@pytest.fixture
def empty_profile():
    return UserProfile()

@pytest.fixture
def make_message():
    """Factory for history messages with unique ids"""
    ids = itertools.count(1)

    def _make(text: str, sender: Sender = Sender.USER, agent_id: str = None) -> Message:
        return Message(id=f"m{next(ids)}", sender=sender, text=text, agent_id=agent_id)

    return _make
