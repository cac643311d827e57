"""
Stage Prompts - Static instruction templates for each BANT stage.

Each template tells the LLM what the current stage is trying to achieve,
gives example phrasing and lists explicit prohibitions. The templates are
content, not logic: they are read-only and never mutated at runtime.
"""

from __future__ import annotations

from dataclasses import dataclass

from bant_sdr.orchestration.state import BANTInfo, Stage


@dataclass(frozen=True)
class StageTemplate:
    """
    Instruction template for one stage.

    Attributes:
        stage: The stage this template drives.
        objective: One-line goal of the stage.
        instruction_prompt: Text injected into the system prompt.
        completion_signals: Lead behaviours that mean the stage is done.
        blocked_signals: Lead behaviours that mean the stage is stuck.
    """
    stage: Stage
    objective: str
    instruction_prompt: str
    completion_signals: tuple[str, ...]
    blocked_signals: tuple[str, ...]


STAGE_TEMPLATES: dict[Stage, StageTemplate] = {
    Stage.OPENING: StageTemplate(
        stage=Stage.OPENING,
        objective="Criar rapport e estabelecer autoridade sem ser invasivo",
        instruction_prompt="""
🎬 ESTÁGIO: ABERTURA (Opening)

ESTRUTURA:
"Oi [Nome]! Percebi que muitas empresas do setor sofrem com [problema comum: perda de leads, atendimento lento, etc]. Faz sentido te mostrar como estão resolvendo isso com IA?"

OBJETIVO:
- Criar rapport e curiosidade
- Validar se problema é relevante
- NÃO venda diretamente ainda
- NÃO peça reunião agora
""",
        completion_signals=(
            "cliente perguntou como funciona",
            "demonstrou interesse em saber mais",
            "confirmou que problema é relevante",
            "pediu detalhes",
            "respondeu positivamente",
        ),
        blocked_signals=(
            "não tenho interesse",
            "já uso outra solução",
            "não é o momento",
            "me manda material",
        ),
    ),
    Stage.BUDGET: StageTemplate(
        stage=Stage.BUDGET,
        objective="Entender budget sem assustar, mostrando que já está gastando",
        instruction_prompt="""
💰 ESTÁGIO: BUDGET (Orçamento)

PERGUNTA OBRIGATÓRIA:
"E hoje, quanto vocês gastam em média com atendimento/vendas por mês?"

COMPLEMENTO (se necessário):
"Pergunto porque geralmente o orçamento já existe, só está mal alocado. Se houvesse uma forma de transformar parte desse custo em investimento que gera mais vendas, faria sentido analisar?"

NÃO mencione preços da Digital Boost. Apenas descubra o budget atual.
""",
        completion_signals=(
            "revelou valores aproximados",
            "mencionou quanto gasta atualmente",
            "disse que tem orçamento",
            "perguntou quanto custaria",
            "mostrou interesse em otimizar gastos",
        ),
        blocked_signals=(
            "não posso revelar valores",
            "não temos orçamento",
            "muito caro",
            "fora do budget",
        ),
    ),
    Stage.AUTHORITY: StageTemplate(
        stage=Stage.AUTHORITY,
        objective="Mapear decisores sem descredibilizar quem fala com você",
        instruction_prompt="""
👔 ESTÁGIO: AUTHORITY (Autoridade Decisória)

PERGUNTA OBRIGATÓRIA:
"Perfeito. Normalmente, quando vocês analisam um projeto desse tipo, quem além de você participa da decisão final?"

JUSTIFICATIVA (se necessário):
"Pergunto só para garantir que, quando formos apresentar a solução completa, todas as pessoas certas já estejam na mesa."

NÃO pergunte "você tem autoridade?" ou "você é o dono?". Use "quem ALÉM de você".
""",
        completion_signals=(
            "mencionou decisor (CEO, sócio, diretor)",
            "revelou processo de decisão",
            "disse que é o decisor",
            "explicou hierarquia",
            "indicou quem precisa aprovar",
        ),
        blocked_signals=(
            "sou apenas funcionário",
            "preciso falar com chefe",
            "não posso decidir isso",
            "decisão é do diretor",
        ),
    ),
    Stage.NEED: StageTemplate(
        stage=Stage.NEED,
        objective="Fazer cliente verbalizar a dor e conectar à solução",
        instruction_prompt="""
🎯 ESTÁGIO: NEED (Necessidade/Dor)

PERGUNTA OBRIGATÓRIA:
"E me conta, hoje qual o maior desafio que vocês enfrentam: perder leads por demora no atendimento, equipe sobrecarregada, ou falta de atendimento 24/7?"

APÓS RESPOSTA:
Resumir o que ele disse e conectar brevemente à solução: "Entendi, então a prioridade é [dor dele]. Nosso agente de IA ataca exatamente esse ponto."

NÃO fale de features ainda. Apenas identifique e valide a dor.
""",
        completion_signals=(
            "verbalizou dor principal",
            "confirmou prioridade",
            "reconheceu impacto no negócio",
            "concordou que precisa resolver",
            "mostrou urgência na dor",
        ),
        blocked_signals=(
            "não temos esse problema",
            "está tudo ok",
            "não é prioridade agora",
            "já resolvemos isso",
        ),
    ),
    Stage.TIMING: StageTemplate(
        stage=Stage.TIMING,
        objective="Criar urgência sem pressionar, ativando gatilho de antecipação",
        instruction_prompt="""
⏰ ESTÁGIO: TIMING (Urgência e Prazo)

PERGUNTA OBRIGATÓRIA:
"Vocês já têm algum prazo em mente para resolver essa questão?"

COMPLEMENTO (criar urgência natural):
"Pergunto porque empresas que se antecipam à Black Friday/fim do ano costumam ter ganhos bem maiores."

NÃO pressione ("precisa decidir hoje"). Apenas identifique o prazo ideal.
""",
        completion_signals=(
            "mencionou prazo específico",
            'disse "o quanto antes"',
            "reconheceu urgência",
            "mencionou evento que pressiona",
            "quer começar logo",
        ),
        blocked_signals=(
            "sem pressa",
            "vamos avaliar com calma",
            "talvez ano que vem",
            "não é urgente",
        ),
    ),
    Stage.CLOSING: StageTemplate(
        stage=Stage.CLOSING,
        objective="Resumir BANT descoberto e propor próximo passo leve",
        instruction_prompt="""
🤝 ESTÁGIO: CLOSING (Fechamento)

ESTRUTURA OBRIGATÓRIA:
"Então recapitulando: vocês [BUDGET], [AUTHORITY participa da decisão], a maior necessidade é [NEED], e o ideal seria [TIMING]. Faz sentido marcarmos uma reunião rápida para mostrar números reais de ROI?"

IMPORTANTE:
- Mencione TODOS os 4 pontos BANT (Budget, Authority, Need, Timing)
- Use palavras exatas do cliente
- CTA leve: "faz sentido marcar..."

NÃO seja agressivo ("fecha comigo hoje?"). Proponha reunião consultiva.
""",
        completion_signals=(
            "aceitou reunião",
            "pediu proposta",
            "perguntou próximos passos",
            "passou contato do decisor",
            "confirmou interesse",
        ),
        blocked_signals=(
            "preciso pensar",
            "me manda material",
            "não é o momento",
            "vou avaliar e retorno",
        ),
    ),
}


def get_stage_template(stage: Stage) -> StageTemplate:
    """Return the template for a stage."""
    return STAGE_TEMPLATES[stage]


def build_stage_prompt(stage: Stage, bant_info: BANTInfo) -> str:
    """
    Render the instructions for the current stage.

    For CLOSING the four collected values are appended verbatim so the
    recap uses the lead's own words.
    """
    prompt = STAGE_TEMPLATES[stage].instruction_prompt

    if stage is Stage.CLOSING:
        prompt += (
            "\nVALORES COLETADOS (use exatamente estas palavras no resumo):\n"
            f'- BUDGET: "{bant_info.budget}"\n'
            f'- AUTHORITY: "{bant_info.authority}"\n'
            f'- NEED: "{bant_info.need}"\n'
            f'- TIMING: "{bant_info.timing}"\n'
        )

    return prompt
