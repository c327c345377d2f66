# application/services/greetings.py
import re
import unicodedata
from datetime import datetime
from typing import Optional
from domain.models.conversation import UserProfile
from domain.models.persona import Agent, AgentArea

GREETING_TOKENS = (
    "oi", "ola", "bom dia", "boa tarde", "boa noite",
    "hey", "hello", "hi", "e ai", "salve",
)

# Words that may accompany a greeting without turning it into a problem statement
FILLER_WORDS = {
    "tudo", "bem", "bom", "beleza", "blz", "como", "vai", "voce", "vc", "pessoal",
    "superboss", "boss", "chefe", "amigo", "ai", "e", "ok", "obrigado", "obrigada", "td",
}

_GREETING_PATTERN = re.compile(
    r"\b(" + "|".join(re.escape(token) for token in GREETING_TOKENS) + r")\b"
)

AREA_GREETINGS = {
    AgentArea.STRATEGY: "Qual objetivo quer destravar primeiro?",
    AgentArea.SALES: "Qual é o seu desafio de vendas hoje?",
    AgentArea.MARKETING: "Que campanha ou canal quer trabalhar agora?",
    AgentArea.PEOPLE: "Qual competência ou vaga priorizamos neste momento?",
    AgentArea.PROCESSES: "Onde está o maior gargalo hoje?",
    AgentArea.FINANCE: "Preferimos começar por fluxo de caixa ou custos?",
}

GREETING_OVERRIDES = {
    "est_planejamento": "Olá, sou Artur, especialista em Planejamento Estratégico. Qual meta quer tornar realidade primeiro?",
    "est_mercado": "Olá, sou Beatriz, especialista em Análise de Mercado e Concorrência. Quer investigar um segmento ou concorrente específico?",
    "est_inovacao": "Olá, sou Cláudio, especialista em Inovação e Transformação Digital. Que processo você quer modernizar agora?",
    "est_governanca": "Olá, sou Débora, especialista em Governança Corporativa. Qual decisão ou responsabilidade está mais nebulosa hoje?",
    "est_okr": "Olá, sou Elias, especialista em OKRs e Metas. Qual resultado você quer medir melhor?",
    "bi_analise": "Olá, sou Sofia, especialista em Business Intelligence. Qual indicador você precisa enxergar com nitidez?",
    "ven_prospeccao": "Olá, sou Carlos, especialista em Prospecção B2B. Quer começar pelo cliente ideal ou pelo roteiro de abordagem?",
    "ven_roteiros": "Olá, sou Diana, especialista em Roteiros de Vendas Consultivas. Qual objeção mais trava seu processo?",
    "ven_crm": "Olá, sou Fábio, especialista em CRM e Follow-up. Quer revisar seu funil atual ou ajustar cadências?",
    "ven_fechamento": "Olá, sou Gabriela, especialista em Negociação e Fechamento. Quer trabalhar ancoragem ou alternativas de valor?",
    "mkt_funil": "Olá, sou Eduardo, especialista em Funil de Vendas Digitais. Em qual etapa do funil você perde tração?",
    "mkt_anuncios": "Olá, sou Fernanda, especialista em Anúncios Pagos. Qual público e mensagem quer testar primeiro?",
    "mkt_redes": "Olá, sou Heitor, especialista em Redes Sociais e Engajamento. Prefere começar por calendário editorial ou formatos?",
    "mkt_email": "Olá, sou Isabela, especialista em Email Marketing. Quer melhorar abertura, cliques ou automações?",
    "cri_visual": "Olá, sou Vitor, especialista em Conteúdos Visuais. Precisa de peças para tráfego ou branding?",
    "pes_formacao": "Olá, sou Gabriel, especialista em Formação de Pessoas. Qual competência precisa evoluir no time agora?",
    "pes_contratacao": "Olá, sou Heloísa, especialista em Contratação de Pessoas. Qual perfil de vaga quer ajustar agora?",
    "pes_vagas": "Olá, sou João, especialista em Anúncios de Vagas. Qual cargo quer publicar primeiro?",
    "pes_cargos": "Olá, sou Larissa, especialista em Descrição de Cargos. Quer começar por liderança ou operação?",
    "pes_feedback": "Olá, sou Marcos, especialista em Feedbacks. Que situação você quer abordar com o time?",
    "pro_mapeamento": "Olá, sou Ícaro, especialista em Mapeamento de Processos. Que fluxo está gerando retrabalho?",
    "pro_melhorias": "Olá, sou Júlia, especialista em Melhoria Contínua (Lean/Kaizen). Qual rotina quer simplificar primeiro?",
    "pro_automacao": "Olá, sou Nícolas, especialista em Automação e Produtividade. Qual processo precisa de automação?",
    "pro_qualidade": "Olá, sou Olívia, especialista em Gestão da Qualidade (ISO). Quer revisar documentos ou auditorias?",
    "pro_agil": "Olá, sou Pedro, especialista em Metodologias Ágeis (Scrum/Kanban). Quer montar sprints ou ajustar quadros?",
    "fin_planejamento": "Olá, sou Lucas, especialista em Planejamento Financeiro Empresarial. Preferimos olhar receita, custos ou projeções?",
    "fin_fluxo_caixa": "Olá, sou Mariana, especialista em Fluxo de Caixa e Capital de Giro. Quer começar por conciliação ou projeção semanal?",
    "fin_custos": "Olá, sou Rafael, especialista em Análise de Custos e Precificação. Está vendendo acima ou abaixo do ideal?",
    "fin_orcamento": "Olá, sou Renata, especialista em Controle Orçamentário. Qual centro de custo está mais pressionado?",
    "fin_indicadores": "Olá, sou Tiago, especialista em Indicadores Financeiros e Relatórios. Qual indicador quer acompanhar no dashboard?",
}


def fold(text: Optional[str]) -> str:
    """Lowercase and strip diacritics, keeping punctuation"""
    decomposed = unicodedata.normalize("NFD", str(text or "").lower())
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize(text: Optional[str]) -> str:
    """Lowercase, strip diacritics and collapse punctuation into single spaces"""
    return re.sub(r"[^\w]+", " ", fold(text)).strip()


def is_greeting(text: Optional[str]) -> bool:
    return _GREETING_PATTERN.search(normalize(text)) is not None


def is_bare_greeting(text: Optional[str]) -> bool:
    """A greeting with at most a few filler words around it"""
    normalized = normalize(text)
    if not _GREETING_PATTERN.search(normalized):
        return False
    remainder = _GREETING_PATTERN.sub(" ", normalized).split()
    extra = [word for word in remainder if word not in FILLER_WORDS]
    return len(extra) <= 1 and len(remainder) <= 4


def salutation(message: Optional[str], now: datetime) -> str:
    """The salutation named in the message wins, otherwise the hour of now decides"""
    normalized = normalize(message)
    if re.search(r"\bboa noite\b", normalized):
        return "Boa noite"
    if re.search(r"\bboa tarde\b", normalized):
        return "Boa tarde"
    if re.search(r"\bbom dia\b", normalized):
        return "Bom dia"
    if now.hour >= 18:
        return "Boa noite"
    if now.hour >= 12:
        return "Boa tarde"
    return "Bom dia"


def greeting_prefix(profile: Optional[UserProfile], message: Optional[str], now: datetime) -> str:
    first_name = profile.first_name if profile else ""
    base = salutation(message, now)
    return f"{base}, {first_name}!" if first_name else f"{base}!"


def superboss_open_question(profile: Optional[UserProfile]) -> str:
    challenge = profile.main_challenge.strip() if profile else ""
    if challenge:
        return f'Por qual desafio quer começar? Se fizer sentido, podemos atacar "{challenge}" primeiro?'
    return "Qual desafio do seu negócio quer atacar primeiro?"


def superboss_greeting_reply(profile: Optional[UserProfile], message: Optional[str], now: datetime) -> str:
    """Conversational reply of the orchestrator to a greeting or an empty message"""
    return f"{greeting_prefix(profile, message, now)} {superboss_open_question(profile)}"


def persona_greeting(agent: Agent) -> str:
    """Opening line shown when a chat with the persona starts"""
    if agent.is_orchestrator:
        return superboss_greeting(agent)
    custom = GREETING_OVERRIDES.get(agent.id)
    if custom:
        return custom
    question = AREA_GREETINGS.get(agent.area, "Qual prioridade começamos?")
    return f"Olá, sou {agent.name}, {agent.specialty}. {question}"


def superboss_greeting(boss: Agent) -> str:
    return f"Olá! Eu sou o {boss.name}, {boss.specialty}. Qual objetivo ou problema quer resolver primeiro?"
