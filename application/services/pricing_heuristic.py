# application/services/pricing_heuristic.py
"""Deterministic pricing dialogue for the cost and pricing specialist.

Numbers are only ever echoed from what the user wrote or derived from them
through ``compute_price_tiers``.
"""
import re
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, List, Optional, Sequence, Tuple, Union
from application.services.greetings import fold, normalize
from domain.models.conversation import ConversationStage, Sender, UserProfile
from shared.config import PricingConfig

ROLE_VARIABLE = "variable"
ROLE_FIXED = "fixed"
ROLE_COMPETITOR = "competitor"

_CENT = Decimal("0.01")

_MONEY_PATTERN = re.compile(
    r"(?<![\w.,])(?P<amount>\d{1,3}(?:[.,]\d{3})+(?:[.,]\d{1,2})?|\d+(?:[.,]\d{1,2})?)(?![\w]|[.,]\d|\s*%)"
)

_ROLE_PATTERNS = {
    ROLE_COMPETITOR: re.compile(r"concorren|competidor"),
    ROLE_FIXED: re.compile(
        r"custos? fixos?|aluguel|\bluz\b|\bagua\b|energia|internet|salario|folha|contas? fixas?"
    ),
    ROLE_VARIABLE: re.compile(
        r"custos? variave(?:l|is)|por unidade|custo unitario|materia[- ]prima|insumo|\bcustos?\b(?! fixos?)"
    ),
}

# Currency word and preposition allowed between a number and a role keyword that follows it
_TRAILING_LEAD_PATTERN = re.compile(r"^\s*(?:(?:reais|real|r\$)\s*)?(?:(?:de|do|da|dos|das|em|no|na|com)\s+)?")
_CLAUSE_BREAK_PATTERN = re.compile(r"[,;.!?]|\s(?:e|mas|ou)\s")
_LIST_GAP_PATTERN = re.compile(r"\s*(?:(?:reais|real)\s*)?(?:,|/|\be\b|\bou\b)?\s*(?:r\$)?\s*")

_TEST_PRICE_PATTERN = re.compile(r"\b(?:baixo|medio|alto)\b|\btest|faixa de preco")
_PRICING_TOPIC_PATTERN = re.compile(r"preco|precific|quanto cobrar|\bcobrar\b|margem|valor de venda")
_DECISION_PATTERN = re.compile(
    r"\b(?P<verb>manter|subir|aumentar|reajustar|baixar|reduzir|diminuir|descer)\b[^.?!]{0,30}\bprecos?\b"
)
_AFFIRMATIVE_PATTERN = re.compile(
    r"^(?:sim|ok|okay|bora|vamos|pode ser|claro|beleza|fechado|let s go|lets go|certo|combinado|partiu)\b"
)

_DECISION_ACTIONS = {
    "manter": "manter",
    "subir": "subir",
    "aumentar": "subir",
    "reajustar": "subir",
    "baixar": "baixar",
    "reduzir": "baixar",
    "diminuir": "baixar",
    "descer": "baixar",
}

Number = Union[Decimal, float, int, str]


@dataclass(frozen=True)
class PriceTiers:
    low: Decimal
    mid: Decimal
    high: Decimal


@dataclass(frozen=True)
class PricingSignals:
    """Money values found in the recent user messages, grouped by role"""
    unit_costs: Tuple[Decimal, ...] = ()
    fixed_costs: Tuple[Decimal, ...] = ()
    competitor_prices: Tuple[Decimal, ...] = ()
    test_prices: Tuple[Decimal, ...] = ()

    @property
    def unit_cost_avg(self) -> Optional[Decimal]:
        return _mean(self.unit_costs)

    @property
    def competitor_avg(self) -> Optional[Decimal]:
        return _mean(self.competitor_prices)

    @property
    def has_cost_or_competitor(self) -> bool:
        return bool(self.unit_costs or self.fixed_costs or self.competitor_prices)


@dataclass(frozen=True)
class PricingGuidance:
    text: str
    terminal: bool = False
    tiers: Optional[PriceTiers] = None
    signals: PricingSignals = field(default_factory=PricingSignals)


def _to_decimal(value: Number) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _mean(values: Sequence[Decimal]) -> Optional[Decimal]:
    if not values:
        return None
    return sum(values, Decimal("0")) / Decimal(len(values))


def round_money(value: Number) -> Decimal:
    return _to_decimal(value).quantize(_CENT, rounding=ROUND_HALF_UP)


def format_brl(value: Number) -> str:
    """Format a value as Brazilian currency, e.g. R$ 1.234,50"""
    us_style = f"{round_money(value):,.2f}"
    return "R$ " + us_style.replace(",", "_").replace(".", ",").replace("_", ".")


def parse_money(token: str) -> Decimal:
    """Parse a Brazilian or US formatted amount ("2.000", "10,50", "1,234.56")"""
    token = token.strip()
    if "," in token and "." in token:
        decimal_sep = "," if token.rfind(",") > token.rfind(".") else "."
        thousands_sep = "." if decimal_sep == "," else ","
        return Decimal(token.replace(thousands_sep, "").replace(decimal_sep, "."))

    for sep in (",", "."):
        if sep in token:
            parts = token.split(sep)
            if len(parts) > 2 or len(parts[-1]) == 3:
                return Decimal("".join(parts))
            return Decimal(".".join(parts))
    return Decimal(token)


def extract_money_values(text: Optional[str]) -> List[Decimal]:
    """Money-like numbers of a message, percentages excluded"""
    return [parse_money(m.group("amount")) for m in _MONEY_PATTERN.finditer(fold(text))]


def _role_in(window: str) -> Optional[str]:
    """Role whose keyword appears closest to the end of the window"""
    best_role, best_pos = None, -1
    for role, pattern in _ROLE_PATTERNS.items():
        for match in pattern.finditer(window):
            if match.start() > best_pos:
                best_role, best_pos = role, match.start()
    return best_role


def _trailing_role(segment: str) -> Tuple[Optional[str], int]:
    """Role named right after a number ("5 reais por unidade") and how much text it spans"""
    brk = _CLAUSE_BREAK_PATTERN.search(segment)
    end = brk.start() if brk else len(segment)
    phrase = segment[:end]
    rest = phrase[_TRAILING_LEAD_PATTERN.match(phrase).end():]
    for role, pattern in _ROLE_PATTERNS.items():
        if pattern.match(rest):
            return role, end
    return None, 0


def _is_test_price_message(folded: str, number_count: int) -> bool:
    return (
        number_count >= 2
        and _TEST_PRICE_PATTERN.search(folded) is not None
        and _role_in(folded) is None
    )


def collect_signals(messages: Iterable[str]) -> PricingSignals:
    unit: List[Decimal] = []
    fixed: List[Decimal] = []
    competitor: List[Decimal] = []
    tests: List[Decimal] = []
    buckets = {ROLE_VARIABLE: unit, ROLE_FIXED: fixed, ROLE_COMPETITOR: competitor}

    for text in messages:
        folded = fold(text)
        matches = list(_MONEY_PATTERN.finditer(folded))
        if not matches:
            continue
        if _is_test_price_message(folded, len(matches)):
            tests.extend(parse_money(m.group("amount")) for m in matches)
            continue

        role = None
        pending: List[Decimal] = []
        cursor = 0
        for index, match in enumerate(matches):
            amount = parse_money(match.group("amount"))
            next_start = matches[index + 1].start() if index + 1 < len(matches) else len(folded)
            gap = folded[cursor:match.start()]
            listed = index > 0 and _LIST_GAP_PATTERN.fullmatch(gap) is not None

            own_role, consumed = _trailing_role(folded[match.end():next_start])
            current = own_role or _role_in(gap) or (role if listed else None)

            # "18, 20 e 22 do concorrente": the role reaches back along the list
            if not listed:
                pending = []
            if current is None:
                pending.append(amount)
            else:
                buckets[current].extend(pending)
                buckets[current].append(amount)
                pending = []

            role = current
            cursor = match.end() + consumed

    return PricingSignals(
        unit_costs=tuple(unit),
        fixed_costs=tuple(fixed),
        competitor_prices=tuple(competitor),
        test_prices=tuple(tests),
    )


def compute_price_tiers(competitor_avg: Optional[Number], unit_cost: Optional[Number],
                        config: PricingConfig = PricingConfig()) -> Optional[PriceTiers]:
    """Three price tiers anchored on the competitor average, or on the unit cost when
    no competitor price is known; unit cost floors and the spread floor apply last."""
    if competitor_avg is None and unit_cost is None:
        return None

    cost = _to_decimal(unit_cost) if unit_cost is not None else None

    if competitor_avg is not None:
        base = _to_decimal(competitor_avg)
        factors = (config.competitor_low, config.competitor_mid, config.competitor_high)
    else:
        base = cost
        factors = (config.cost_low, config.cost_mid, config.cost_high)
    low, mid, high = (base * _to_decimal(factor) for factor in factors)

    if cost is not None:
        low = max(low, cost * _to_decimal(config.floor_low))
        mid = max(mid, cost * _to_decimal(config.floor_mid))
        high = max(high, cost * _to_decimal(config.floor_high))

    high = max(high, low * _to_decimal(config.spread))

    return PriceTiers(low=round_money(low), mid=round_money(mid), high=round_money(high))


def is_pricing_topic(text: Optional[str]) -> bool:
    return _PRICING_TOPIC_PATTERN.search(fold(text)) is not None


def is_pricing_request(text: Optional[str]) -> bool:
    """A pricing question that already carries money values"""
    return is_pricing_topic(text) and bool(extract_money_values(text))


def summarize_pricing_request(text: str) -> str:
    """Condensed problem statement for a pricing message, built only from echoed values"""
    signals = collect_signals([text])
    details = []
    if signals.unit_costs:
        details.append("custo por unidade " + ", ".join(format_brl(v) for v in signals.unit_costs))
    if signals.fixed_costs:
        details.append("custos fixos " + ", ".join(format_brl(v) for v in signals.fixed_costs))
    if signals.competitor_prices:
        details.append("preço de concorrente " + ", ".join(format_brl(v) for v in signals.competitor_prices))
    if signals.test_prices:
        details.append("preços de teste " + ", ".join(format_brl(v) for v in sorted(set(signals.test_prices))))
    summary = "Definir o preço de venda com base nos números informados pelo usuário"
    if details:
        summary += ": " + "; ".join(details)
    return summary + "."


def _join_values(values: Sequence[Decimal]) -> str:
    formatted = [format_brl(v) for v in values]
    if len(formatted) == 1:
        return formatted[0]
    return ", ".join(formatted[:-1]) + " e " + formatted[-1]


def _recent_user_texts(history: Optional[Iterable], user_message: str, limit: int) -> List[str]:
    texts = []
    for message in history or ():
        if getattr(message, "sender", None) == Sender.USER:
            text = getattr(message, "text", None)
            if isinstance(text, str) and text.strip():
                texts.append(text)
    if user_message and user_message.strip():
        texts.append(user_message)
    return texts[-limit:] if limit > 0 else []


def _profile_context(profile: Optional[UserProfile]) -> str:
    if profile is None:
        return ""
    parts = []
    if profile.main_product.strip():
        parts.append(f"você vende {profile.main_product.strip()}")
    if profile.company_field.strip():
        parts.append(f"no ramo de {profile.company_field.strip()}")
    if profile.target_audience.strip():
        parts.append(f"para {profile.target_audience.strip()}")
    return " ".join(parts)


def pricing_guidance(profile: Optional[UserProfile], history: Optional[Iterable], user_message: str,
                     stage: ConversationStage,
                     config: PricingConfig = PricingConfig()) -> Optional[PricingGuidance]:
    """Next pricing prompt, or None when the message gives the heuristic nothing to work with"""
    folded = fold(user_message)

    decision = _DECISION_PATTERN.search(folded)
    if decision:
        action = _DECISION_ACTIONS[decision.group("verb")]
        return PricingGuidance(
            text=(
                f"Decisão registrada: vamos {action} o preço. Plano de ação: "
                "1) atualize sua tabela de preços e os canais de venda; "
                "2) acompanhe a margem e a taxa de conversão pelos próximos 7 dias; "
                "3) reavalie com os números reais e ajuste se necessário."
            ),
            terminal=True,
        )

    if stage == ConversationStage.FOLLOWUP and _AFFIRMATIVE_PATTERN.search(normalize(user_message)):
        return PricingGuidance(
            text="Ótimo! Quais três preços de teste (baixo, médio e alto) você quer colocar em prática?"
        )

    signals = collect_signals(_recent_user_texts(history, user_message, config.lookback_messages))

    tiers = compute_price_tiers(signals.competitor_avg, signals.unit_cost_avg, config)
    if tiers is not None:
        basis = []
        if signals.competitor_avg is not None:
            basis.append(f"no preço médio dos concorrentes ({format_brl(signals.competitor_avg)})")
        if signals.unit_cost_avg is not None:
            basis.append(f"no custo por unidade ({format_brl(signals.unit_cost_avg)})")
        return PricingGuidance(
            text=(
                f"Com base {' e '.join(basis)}, sugiro três faixas de preço: "
                f"baixo {format_brl(tiers.low)}, médio {format_brl(tiers.mid)} e alto {format_brl(tiers.high)}. "
                "Qual delas combina mais com o posicionamento que você quer?"
            ),
            tiers=tiers,
            signals=signals,
        )

    distinct_tests = sorted(set(signals.test_prices))
    if len(distinct_tests) >= 2 and not signals.has_cost_or_competitor:
        return PricingGuidance(
            text=(
                f"Anotei seus preços de teste: {_join_values(distinct_tests)}. "
                "Para validar a margem de cada um, quais são seus custos fixos do mês, "
                "o custo variável por unidade e o preço de pelo menos um concorrente?"
            ),
            signals=signals,
        )

    if signals.fixed_costs:
        return PricingGuidance(
            text=(
                f"Anotei seus custos fixos: {_join_values(signals.fixed_costs)}. "
                "Qual é o custo variável por unidade ou o preço típico de um concorrente?"
            ),
            signals=signals,
        )

    if is_pricing_topic(user_message):
        known = _profile_context(profile)
        lead = f"Já sei que {known}. " if known else ""
        return PricingGuidance(
            text=(
                f"{lead}Para precificar, como você quer se posicionar (entrada, padrão ou premium), "
                "qual o preço de um concorrente de referência, o custo aproximado por unidade "
                "e/ou três preços que gostaria de testar?"
            ),
            signals=signals,
        )

    return None
