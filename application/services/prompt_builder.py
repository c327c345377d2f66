# application/services/prompt_builder.py
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple
from application.services.greetings import fold
from domain.models.conversation import UserProfile
from domain.models.persona import Agent, AgentArea
from domain.persona_registry import PersonaRegistry

BASE_TONE = (
    "Diretrizes de tom e comportamento (não mostre isto ao usuário):",
    "- Claro, humano, direto e prático; foco em micro, pequenas e médias empresas.",
    "- Evite jargões; explique em linguagem simples e orientada à ação.",
    "- Mostre empatia, mas mantenha objetividade e economia de palavras.",
    "- Proponha próximos passos concretos, com bullets ou etapas curtas.",
    "- Evite promessas irreais; priorize impacto e viabilidade.",
    "- Em saudações simples (ex: \"boa noite\"), responda com 1 linha e faça apenas 1 pergunta essencial.",
    "- Faça 1 pergunta por vez. Após a resposta do usuário, faça a próxima pergunta necessária até ter dados suficientes.",
    "- Não ancore no \"Principal Desafio Atual\" do perfil; use-o apenas como pano de fundo quando for relevante ao tópico em curso.",
    "- Se o usuário quiser falar de outro assunto, mude de assunto sem insistir no desafio do perfil.",
    "- Evite textos longos na primeira interação: máximo 2 frases + 1 pergunta.",
)

AREA_TONE: Dict[AgentArea, Tuple[str, ...]] = {
    AgentArea.FINANCE: (
        "- Destaque clareza numérica e riscos; recomende decisões conservadoras quando incerto.",
        "- Use exemplos simples para margens, preços e projeções.",
    ),
    AgentArea.SALES: (
        "- Mantenha uma voz consultiva, confiante e colaborativa.",
        "- Foque em cadência, roteiro e próximos passos para avanço do funil.",
    ),
    AgentArea.MARKETING: (
        "- Foque em ROI, mensagem clara e segmentação simples.",
        "- Evite modismos; priorize hipóteses testáveis e medições objetivas.",
        "- Em uma saudação, não resuma o perfil; apenas cumprimente e faça 1 pergunta.",
    ),
    AgentArea.PEOPLE: (
        "- Equilibre empatia e clareza; comunique com respeito e precisão.",
        "- Estruture scripts e trilhas com linguagem acessível.",
    ),
    AgentArea.PROCESSES: (
        "- Valorize simplicidade operacional e ganhos rápidos.",
        "- Traga estrutura visual (SIPOC, quadros) quando útil.",
    ),
    AgentArea.STRATEGY: (
        "- Vincule recomendações a posicionamento e diferenciação.",
        "- Seja pragmático: plano em etapas curtas com checkpoints.",
        "- Se a entrada for vaga, evite listar múltiplas perguntas; comece com 1 pergunta-chave.",
    ),
}


@dataclass(frozen=True)
class ResponseTemplate:
    name: str
    keywords: Tuple[str, ...]
    body: str

    def matches(self, folded_message: str) -> bool:
        return any(fold(keyword) in folded_message for keyword in self.keywords)


RESPONSE_TEMPLATES: Dict[AgentArea, Tuple[ResponseTemplate, ...]] = {
    AgentArea.STRATEGY: (
        ResponseTemplate(
            "Mapa de Concorrência (3x3)", ("concorrência", "competidor", "posicionamento", "benchmark"),
            "- Objetivo: [ex]\n- Critérios (linhas): Preço | Qualidade | Agilidade\n"
            "- Players (colunas): Nós | A | B | C\n- Observações-chave: [bullets]\n"
            "- Decisões: [3 ações com prazo]\n- Métricas: [2 KPIs]",
        ),
        ResponseTemplate(
            "OKRs Trimestrais (empresa)", ("okr", "metas", "objetivos", "resultados-chave"),
            "- Objetivo 1: [claro e inspirador]\n- KR1: [mensurável] | KR2: [mensurável]\n"
            "- Iniciativas: [3-5]\n- Ritmo: checkpoints semanais + retro mensal",
        ),
        ResponseTemplate(
            "Plano de Inovação Enxuto", ("inovação", "transformação", "digital", "mvp"),
            "- Tese: [hipótese]\n- MVP: [escopo mínimo]\n- Validação: [como medir]\n"
            "- Riscos: [principais]\n- Próximos passos: [3 etapas, datas]",
        ),
    ),
    AgentArea.SALES: (
        ResponseTemplate(
            "Cadência de Prospecção B2B (14 dias)", ("prospecção", "cadência", "outbound", "cold"),
            "- Dia 1: Email 1 (dor + valor)\n- Dia 3: LinkedIn invite + nota\n- Dia 5: Email 2 (prova social)\n"
            "- Dia 8: Ligação breve (2 min)\n- Dia 11: Email 3 (call to action)\n- Dia 14: Último toque (valor + saída)",
        ),
        ResponseTemplate(
            "Roteiro de Venda Consultiva (SPIN enxuto)", ("roteiro", "script", "consultiva", "reunião"),
            "- Situação: [contexto]\n- Problema: [2-3 dores]\n- Implicação: [impacto]\n"
            "- Necessidade: [resultado desejado]\n- Proposta: [solução + próximos passos]",
        ),
        ResponseTemplate(
            "Pipeline e Follow-up no CRM", ("crm", "pipeline", "follow-up"),
            "- Etapas: Lead | Qualificação | Proposta | Negociação | Fechamento\n"
            "- SLAs: [tempos por etapa]\n- Tarefas automáticas: [3]\n- Rotina diária: [checklist]",
        ),
    ),
    AgentArea.MARKETING: (
        ResponseTemplate(
            "Funil TOFU/MOFU/BOFU", ("funil", "leads", "tofu", "mofu", "bofu"),
            "- TOFU: [iscas]\n- MOFU: [educação]\n- BOFU: [oferta]\n"
            "- KPI por etapa: [indicadores]\n- Testes: [hipóteses e métricas]",
        ),
        ResponseTemplate(
            "Estrutura de Campanhas Pagas", ("ads", "anúncios", "google", "meta"),
            "- Público: [segmentos]\n- Criativos: [mensagens]\n- Orçamento: [distribuição]\n"
            "- Rastreamento: [UTMs e eventos]\n- Rotina de otimização: [cadência]",
        ),
        ResponseTemplate(
            "Calendário Social (4 semanas)", ("redes sociais", "instagram", "conteúdo", "calendário"),
            "- Linha editorial: [temas]\n- Semana 1-4: [postagens]\n- Engajamento: [roteiro]\n- Métricas: [KPIs]",
        ),
    ),
    AgentArea.PEOPLE: (
        ResponseTemplate(
            "Trilha de Formação (90 dias)", ("formação", "treinamento", "onboarding"),
            "- Objetivos de competência: [3-5]\n- Conteúdos e práticas: [blocos]\n"
            "- Avaliações: [formas e datas]\n- Mentoria: [ritmo]\n- Encerramento: [critérios]",
        ),
        ResponseTemplate(
            "Roteiro de Feedback (SBI)", ("feedback", "desempenho", "conversa"),
            "- Situação: [contexto]\n- Comportamento: [observável]\n- Impacto: [efeito]\n"
            "- Próximo passo: [acordo]\n- Follow-up: [data]",
        ),
        ResponseTemplate(
            "Anúncio de Vaga + Pontos de Avaliação", ("vaga", "recrutamento", "descrição"),
            "- Perfil: [must-have]\n- Responsabilidades: [5-7]\n- Avaliação: [pontos e testes]\n"
            "- Oferta: [faixa e benefícios]",
        ),
    ),
    AgentArea.PROCESSES: (
        ResponseTemplate(
            "SIPOC Enxuto", ("processo", "mapeamento", "sipoc"),
            "- Suppliers: [fornecedores]\n- Inputs: [insumos]\n- Process: [etapas]\n"
            "- Outputs: [entregáveis]\n- Customers: [beneficiários]",
        ),
        ResponseTemplate(
            "Kaizen de 1 Semana", ("kaizen", "melhoria contínua", "gargalo"),
            "- Gargalo: [ponto]\n- Hipóteses: [2-3]\n- Teste rápido: [ação]\n"
            "- Resultado: [métrica]\n- Padronização: [procedimento]",
        ),
        ResponseTemplate(
            "Automação com ROI", ("automação", "integração", "zapier", "integromat"),
            "- Processo alvo: [descrição]\n- Passos automáveis: [lista]\n- Ferramentas: [opções]\n"
            "- ROI estimado: [cálculo simples]\n- Implementação: [etapas]",
        ),
    ),
    AgentArea.FINANCE: (
        ResponseTemplate(
            "Precificação com Markup", ("preço", "precificação", "margem", "markup"),
            "- Custos: [fixos] + [variáveis]\n- Markup alvo: [ex: 30%]\n- Preço sugerido: [fórmula]\n"
            "- Sensibilidade: [±10%]\n- Próximos passos: [validação e ajuste]",
        ),
        ResponseTemplate(
            "Fluxo de Caixa Semanal", ("fluxo de caixa", "capital de giro", "projeção"),
            "- Entradas: [semanas]\n- Saídas: [semanas]\n- Saldo: [gráfico simples]\n"
            "- Alertas: [pontos críticos]\n- Ações: [3 medidas]",
        ),
        ResponseTemplate(
            "Indicadores Financeiros (painel enxuto)", ("indicadores", "relatório", "dashboard"),
            "- Receita | Margem | CAC | LTV | Estoque\n- Meta por indicador: [valores]\n"
            "- Rotina: [cadência de atualização]",
        ),
    ),
}

DELEGATION_INSTRUCTION = (
    'O SuperBoss já centralizou a análise do problema do usuário, que é: "{summary}". '
    "Sua tarefa é focar EXCLUSIVAMENTE em sua especialidade ({specialty}) e fornecer uma solução "
    "direta, prática e acionável para este problema. NÃO repita o problema nem faça perguntas "
    "de diagnóstico; responda com o plano de ação da sua área."
)

CHART_IMAGE_PROMPT = (
    "Crie um gráfico de negócios limpo e profissional do tipo '{type}' com o título '{title}'. "
    "Os dados são: Rótulos do eixo X: [{labels}]. Valores do eixo Y: [{values}]. "
    "Garanta que todos os textos e números sejam claros, legíveis e não se sobreponham."
)


def tone_guidelines(agent: Agent) -> str:
    return "\n".join(BASE_TONE + AREA_TONE.get(agent.area, ()))


def templates_for(agent: Agent, message: Optional[str], limit: int = 2) -> List[ResponseTemplate]:
    """Response templates of the persona's area whose keywords appear in the message"""
    folded = fold(message)
    candidates = RESPONSE_TEMPLATES.get(agent.area, ())
    return [template for template in candidates if template.matches(folded)][:limit]


def render_templates(templates: List[ResponseTemplate]) -> str:
    if not templates:
        return ""
    blocks = [f"Modelo sugerido - {template.name}:\n{template.body}" for template in templates]
    return "Use, se fizer sentido, a estrutura abaixo na resposta:\n" + "\n\n".join(blocks)


def persona_system_prompt(agent: Agent, profile: Optional[UserProfile], message: Optional[str] = None) -> str:
    parts = [agent.instruction, tone_guidelines(agent)]
    templates = render_templates(templates_for(agent, message))
    if templates:
        parts.append(templates)
    parts.append((profile or UserProfile()).to_context())
    return "\n\n".join(parts)


def agent_directory(registry: PersonaRegistry) -> str:
    lines = [f"- {agent.name} (id: {agent.id}): {agent.specialty}" for agent in registry.specialists()]
    return "Lista de Agentes Disponíveis:\n" + "\n".join(lines)


def superboss_system_prompt(registry: PersonaRegistry, profile: Optional[UserProfile]) -> str:
    return "\n".join([
        registry.orchestrator.instruction,
        agent_directory(registry),
        "",
        (profile or UserProfile()).to_context(),
    ])


def delegation_message(agent: Agent, summary: str) -> str:
    return DELEGATION_INSTRUCTION.format(summary=summary, specialty=agent.specialty)


def chart_image_prompt(chart_type: str, title: str, labels, values) -> str:
    return CHART_IMAGE_PROMPT.format(
        type=chart_type,
        title=title,
        labels=", ".join(str(label) for label in labels),
        values=", ".join(str(value) for value in values),
    )
