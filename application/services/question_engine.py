# application/services/question_engine.py
from datetime import datetime
from typing import Dict, Iterable, Optional
from application.services.greetings import (
    greeting_prefix, is_bare_greeting, is_greeting, superboss_open_question
)
from application.services.pricing_heuristic import pricing_guidance
from application.services.stage_classifier import classify_stage
from domain.models.analysis import NextPrompt
from domain.models.conversation import ConversationStage, UserProfile
from domain.models.persona import Agent, AgentArea, Capability
from shared.config import PricingConfig, StageThresholds

D, P, E, F = (
    ConversationStage.DIAGNOSIS,
    ConversationStage.PRIORITIZATION,
    ConversationStage.EXECUTION,
    ConversationStage.FOLLOWUP,
)

AREA_QUESTIONS: Dict[AgentArea, Dict[ConversationStage, str]] = {
    AgentArea.STRATEGY: {
        D: "Qual meta quer destravar primeiro?",
        P: "Qual prazo e indicador de sucesso você pretende usar?",
        E: "Quais recursos você tem disponíveis hoje para começar?",
        F: "Qual aprendizado desta etapa devemos registrar para o próximo ciclo?",
    },
    AgentArea.SALES: {
        D: "Quem é seu cliente ideal hoje?",
        P: "Qual objeção mais frequente trava suas conversas?",
        E: "Em qual etapa você mais perde vendas?",
        F: "Qual rotina de acompanhamento vamos manter?",
    },
    AgentArea.MARKETING: {
        D: "Qual público-alvo e mensagem principal você quer testar?",
        P: "Qual canal e orçamento inicial vamos usar?",
        E: "Qual resultado vamos usar para decidir, como cliques ou custo por venda?",
        F: "Qual resultado desta campanha vamos documentar?",
    },
    AgentArea.PEOPLE: {
        D: "Qual competência no time precisa evoluir agora?",
        P: "Qual perfil de vaga ou trilha devemos priorizar?",
        E: "Qual rotina iniciamos nesta semana (feedback, conversa 1:1 ou treino)?",
        F: "Qual evidência de evolução vamos acompanhar?",
    },
    AgentArea.PROCESSES: {
        D: "Qual fluxo está gerando retrabalho?",
        P: "Qual ponto do processo é o maior gargalo?",
        E: "Qual experimento simples testamos em 1 semana?",
        F: "Qual padrão/procedimento novo vamos manter?",
    },
    AgentArea.FINANCE: {
        D: "Vamos começar por fluxo de caixa ou custos?",
        P: "Qual período e metas financeiras vamos usar?",
        E: "Quais entradas e contas/custos começamos mapeando?",
        F: "Qual indicador vamos acompanhar diariamente?",
    },
}

GENERIC_QUESTIONS: Dict[ConversationStage, str] = {
    D: "Qual prioridade começamos?",
    P: "Qual critério de sucesso vamos usar?",
    E: "Qual primeiro passo concreto executamos hoje?",
    F: "Qual aprendizado registrar para o próximo passo?",
}

# Only strategy anchors on the onboarding challenge; other areas follow the live topic
CHALLENGE_TEMPLATES: Dict[AgentArea, Dict[ConversationStage, str]] = {
    AgentArea.STRATEGY: {
        D: 'Qual meta relacionada a "{challenge}" quer destravar primeiro?',
    },
}

QUESTION_OVERRIDES: Dict[str, Dict[ConversationStage, str]] = {
    "est_planejamento": {
        D: "Qual meta quer tornar realidade primeiro?",
        P: "Qual prazo e como vamos saber que deu certo?",
        E: "O que você já tem hoje para começar (tempo, pessoas, ferramentas)?",
        F: "Que aprendizado desta etapa anotamos para o próximo ciclo?",
    },
    "est_mercado": {
        D: "Quem é seu cliente ideal e quais concorrentes diretos você enfrenta?",
        P: "Qual diferencial quer reforçar frente aos concorrentes?",
        E: "Quer mapear posicionamento e preço de 3 concorrentes principais?",
        F: "Que insight competitivo registramos para o próximo ciclo?",
    },
    "est_inovacao": {
        D: "Quais processos críticos e ferramentas atuais geram mais atrito?",
        P: "Qual objetivo (eficiência/experiência/escala) priorizamos?",
        E: "Quer iniciar com 1 piloto de baixa complexidade?",
        F: "Qual viabilidade percebida e próximo ajuste na adoção?",
    },
    "est_governanca": {
        D: "Como é seu modelo decisório e controles mínimos hoje?",
        P: "Qual política ou rito precisa ser instituído primeiro?",
        E: "Quer montar um checklist simples de papéis e reuniões?",
        F: "Qual risco/ganho vamos monitorar neste ciclo?",
    },
    "est_okr": {
        D: "Qual objetivo trimestral você quer alcançar primeiro?",
        P: "Qual métrica e responsável vamos atribuir ao resultado-chave?",
        E: "Qual iniciativa começamos nesta semana?",
        F: "Qual cadência de revisão das metas vamos adotar?",
    },
    "bi_analise": {
        D: "Qual indicador você precisa enxergar com mais clareza?",
        P: "Qual fonte de dados e com que frequência vamos atualizar?",
        E: "Qual visual simples comunica melhor (tabela ou gráfico)?",
        F: "Qual rotina de atualização do painel vamos adotar?",
    },
    "ven_prospeccao": {
        D: "Quer começar pelo cliente ideal ou pelo roteiro de abordagem?",
        P: "Qual canal traz leads mais qualificados?",
        E: "Qual ritmo de contatos por 2 semanas faz sentido para você?",
        F: "Qual taxa de resposta tivemos e como vamos ajustar?",
    },
    "ven_roteiros": {
        D: "Quem é seu cliente ideal hoje?",
        P: "Qual objeção mais comum trava suas conversas?",
        E: "Em qual etapa você mais perde vendas?",
        F: "Qual rotina de acompanhamento vamos manter?",
    },
    "ven_crm": {
        D: "Quais etapas do funil e prazos você usa hoje?",
        P: "Qual automação traz maior impacto imediato?",
        E: "Quer desenhar uma régua de relacionamento simples?",
        F: "Qual indicador de conversão vamos acompanhar por etapa?",
    },
    "ven_fechamento": {
        D: "Qual proposta atual e margem alvo você trabalha?",
        P: "Qual objeção mais recorrente deseja tratar agora?",
        E: "Quer melhorar a proposta e combinar o que pode ceder neste caso?",
        F: "Qual próximo passo de fechamento vamos executar?",
    },
    "mkt_funil": {
        D: "Qual oferta e objetivo principal (leads ou vendas) você quer validar?",
        P: "Qual canal inicial e resultado vamos usar (ex.: cliques, custo por venda)?",
        E: "Quer desenhar topo, meio e fundo do funil com 1 ação por etapa?",
        F: "Qual resultado do funil vamos documentar para ajustar?",
    },
    "mkt_anuncios": {
        D: "Qual público e mensagem você quer testar?",
        P: "Qual canal e orçamento inicial vamos usar?",
        E: "Qual resultado vamos usar para decidir (cliques, custo por venda, retorno)?",
        F: "Que aprendizado desta campanha vamos registrar?",
    },
    "mkt_redes": {
        D: "Qual objetivo e voz da marca nas redes sociais?",
        P: "Quais formatos priorizamos (reels, carrossel, live) e calendário?",
        E: "Quer montar 1 semana de pautas com chamadas para ação claras?",
        F: "Quais métricas de engajamento simples vamos acompanhar?",
    },
    "mkt_email": {
        D: "Qual objetivo (abertura, clique ou venda) e base atual?",
        P: "Qual segmentação e automação inicial vamos usar?",
        E: "Quer montar uma sequência com 3 emails e testes com duas versões?",
        F: "Qual resultado vamos documentar para iterar?",
    },
    "cri_visual": {
        D: "Qual peça visual precisa (post, banner, gráfico) e objetivo?",
        P: "Qual formato, tamanho e paleta de cor priorizamos?",
        E: "Quer esboçar um layout com texto e CTA?",
        F: "Qual ajuste de legibilidade ou estética vamos aplicar?",
    },
    "pes_formacao": {
        D: "Quais competências-alvo e público da trilha?",
        P: "Qual formato (assíncrono/síncrono) e carga inicial?",
        E: "Quer montar uma trilha base com avaliação simples?",
        F: "Qual métrica de evolução vamos acompanhar?",
    },
    "pes_contratacao": {
        D: "Quer começar analisando um currículo ou definindo perfil da vaga?",
        P: "Quais requisitos obrigatórios e desejáveis priorizamos?",
        E: "Quer criar um roteiro de entrevista com 5 perguntas-chave?",
        F: "Qual evidência vamos registrar por candidato?",
    },
    "pes_vagas": {
        D: "Qual vaga e público-alvo para o anúncio?",
        P: "Quais benefícios e missão queremos destacar?",
        E: "Quer estruturar título, missão, atividades e requisitos?",
        F: "Qual CTA e canal de anúncio vamos usar?",
    },
    "pes_cargos": {
        D: "Qual cargo e nível de senioridade precisamos descrever?",
        P: "Quais responsabilidades e competências priorizamos?",
        E: "Quer organizar KPIs e objetivos do cargo?",
        F: "Qual ajuste do escopo vamos validar com o time?",
    },
    "pes_feedback": {
        D: "Qual situação e objetivo do feedback?",
        P: "Quais evidências e riscos devemos abordar?",
        E: "Quer montar o roteiro: descrição, impacto, acordo?",
        F: "Qual acompanhamento e combinados vamos agendar?",
    },
    "pro_mapeamento": {
        D: "Qual fluxo atual gera mais retrabalho?",
        P: "Qual gargalo principal e métrica relacionada?",
        E: "Quer montar um resumo simples com entradas e saídas?",
        F: "Qual ganho esperado e próximo passo de melhoria?",
    },
    "pro_melhorias": {
        D: "Qual problema e causa provável estamos tratando?",
        P: "Qual meta e restrições definimos para o experimento?",
        E: "Quer desenhar uma melhoria de 1 semana?",
        F: "Qual padrão novo e indicador vamos adotar?",
    },
    "pro_automacao": {
        D: "Qual processo, ferramentas e gatilhos atuais?",
        P: "Qual automação simples traz retorno mais rápido?",
        E: "Quer detalhar integrações e SLAs mínimos?",
        F: "Qual validação técnica e métricas de sucesso acompanhar?",
    },
    "pro_qualidade": {
        D: "Qual escopo e documentos existentes de qualidade?",
        P: "Quais indicadores e auditorias priorizamos?",
        E: "Quer montar checklist e fluxos mínimos?",
        F: "Qual plano de auditoria e responsáveis vamos definir?",
    },
    "pro_agil": {
        D: "Qual equipe, backlog e cadência atual?",
        P: "Quais cerimônias, limites e critérios de pronto priorizamos?",
        E: "Quer configurar quadro e rotina mínima?",
        F: "Qual métrica e cadência de avaliação manter?",
    },
    "fin_planejamento": {
        D: "Quer começar por resultado, balanço ou fluxo de caixa?",
        P: "Qual período, metas e categorias financeiras revisamos?",
        E: "Quer montar um painel simples de tendências e riscos?",
        F: "Qual rotina de revisão financeira vamos adotar?",
    },
    "fin_fluxo_caixa": {
        D: "Qual período quer projetar (semana ou mês)?",
        P: "Quais são suas entradas principais neste período?",
        E: "Vamos listar contas do mês e custos que variam com as vendas?",
        F: "Qual indicador financeiro simples vamos acompanhar todo dia?",
    },
    "fin_custos": {
        D: "Para começar, liste 3 contas fixas do mês (R$) e 3 custos que variam com as vendas (R$).",
        P: "Você quer um preço mais seguro (margem) ou mais competitivo (vender mais)?",
        E: "Você já tem três preços de teste (baixo/médio/alto)? Se sim, diga. Se não, informe custos fixos (R$), custo variável por unidade (R$) e, se souber, um preço típico de concorrente.",
        F: "Com o teste, vemos a margem e decidimos: subir, descer ou manter o preço.",
    },
    "fin_orcamento": {
        D: "Começamos por gasto real vs planejado ou por centros de custo?",
        P: "Qual período e categoria mais crítica vamos revisar?",
        E: "Quer montar um quadro simples de desvios e ações?",
        F: "Qual rotina de acompanhamento do orçamento vamos adotar?",
    },
}


def lookup_question(agent: Agent, stage: ConversationStage, profile: Optional[UserProfile] = None) -> str:
    """override[persona][stage], then the area table, then the generic table"""
    override = QUESTION_OVERRIDES.get(agent.id, {}).get(stage)
    if override:
        return override

    challenge = profile.main_challenge.strip() if profile else ""
    if challenge:
        template = CHALLENGE_TEMPLATES.get(agent.area, {}).get(stage)
        if template:
            return template.format(challenge=challenge)

    area_question = AREA_QUESTIONS.get(agent.area, {}).get(stage)
    if area_question:
        return area_question
    return GENERIC_QUESTIONS[stage]


def ensure_question_mark(question: str) -> str:
    question = question.rstrip().rstrip(".")
    return question if question.endswith("?") else f"{question}?"


class QuestionEngine:
    """Pure next-question selection for single persona dialogues"""

    def __init__(self, thresholds: StageThresholds = StageThresholds(),
                 pricing: PricingConfig = PricingConfig(),
                 pricing_enabled: bool = True):
        self.thresholds = thresholds
        self.pricing = pricing
        self.pricing_enabled = pricing_enabled

    def next_prompt(self, agent: Agent, profile: Optional[UserProfile], history: Optional[Iterable],
                    user_message: str, now: Optional[datetime] = None) -> NextPrompt:
        now = now or datetime.now()
        history = list(history or ())
        stage = classify_stage(history, agent.id, self.thresholds)

        prefix = greeting_prefix(profile, user_message, now) if is_greeting(user_message) else None

        if agent.is_orchestrator and (not (user_message or "").strip() or is_bare_greeting(user_message)):
            return NextPrompt(
                question=superboss_open_question(profile),
                stage=stage,
                greeting_prefix=greeting_prefix(profile, user_message, now),
            )

        if self.pricing_enabled and agent.can(Capability.PRICING):
            guidance = pricing_guidance(profile, history, user_message, stage, self.pricing)
            if guidance is not None:
                question = guidance.text if guidance.terminal else ensure_question_mark(guidance.text)
                return NextPrompt(
                    question=question,
                    stage=stage,
                    greeting_prefix=prefix,
                    terminal=guidance.terminal,
                )

        return NextPrompt(
            question=ensure_question_mark(lookup_question(agent, stage, profile)),
            stage=stage,
            greeting_prefix=prefix,
        )

    # Name used by the chat front end
    get_next_agent_question = next_prompt
