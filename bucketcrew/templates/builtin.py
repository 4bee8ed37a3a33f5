"""Workflow templates shipped with bucketcrew."""

from __future__ import annotations

from typing import Any, Dict, List

from ..contracts import WorkflowTemplate

BUILTIN_TEMPLATE_DATA: List[Dict[str, Any]] = [
    {
        "id": "research-sprint",
        "name": "Research Sprint",
        "description": (
            "Deep-dive into your market landscape, competitors, and customer "
            "segments from your business files."
        ),
        "category": "Research",
        "tagline": "Know your market in minutes, not months.",
        "what_you_get": [
            "Market landscape overview",
            "Competitor profiles & positioning",
            "Customer segment analysis",
            "Opportunity gaps identified",
            "Action items & next steps",
        ],
        "credit_cost": 1,
        "output_schema": "findings",
        "form_fields": [
            {
                "id": "business_description",
                "label": "Describe your business",
                "type": "textarea",
                "required": True,
            },
            {
                "id": "target_market",
                "label": "Who is your target market?",
                "type": "textarea",
                "required": True,
            },
            {
                "id": "competitors",
                "label": "Key competitors (optional)",
                "type": "textarea",
            },
            {
                "id": "focus_areas",
                "label": "Focus areas",
                "type": "checkbox",
                "options": [
                    {"label": "Market size & trends", "value": "market_size"},
                    {"label": "Competitor analysis", "value": "competitors"},
                    {"label": "Customer segments", "value": "customers"},
                    {"label": "Pricing landscape", "value": "pricing"},
                    {"label": "Channel opportunities", "value": "channels"},
                ],
            },
        ],
        "steps": [
            {
                "id": "plan",
                "agent_role": "planner",
                "name": "Planner",
                "description": "Analyzes your goal and creates a research plan",
                "instructions": "planner",
            },
            {
                "id": "research_market",
                "agent_role": "researcher",
                "name": "Market Researcher",
                "description": "Researches market landscape and trends",
                "instructions": "researcher",
                "depends_on": ["plan"],
                "parallel_group": "research",
            },
            {
                "id": "research_competitors",
                "agent_role": "researcher",
                "name": "Competitive Analyst",
                "description": "Analyzes competitors and positioning",
                "instructions": "researcher",
                "depends_on": ["plan"],
                "parallel_group": "research",
            },
            {
                "id": "strategize",
                "agent_role": "strategist",
                "name": "Strategist",
                "description": "Synthesizes findings into recommendations",
                "instructions": "strategist",
                "depends_on": ["research_market", "research_competitors"],
            },
            {
                "id": "edit",
                "agent_role": "editor",
                "name": "Editor",
                "description": "Polishes the final deliverable",
                "instructions": "editor",
                "depends_on": ["strategize"],
            },
        ],
    },
    {
        "id": "growth-plan",
        "name": "90-Day Growth Plan",
        "description": (
            "A strategic, actionable growth plan with channels, offers, "
            "experiments, and KPIs calibrated to your business data."
        ),
        "category": "Strategy",
        "tagline": "A strategic plan. Not a to-do list.",
        "what_you_get": [
            "Growth strategy overview",
            "Channel-by-channel plan",
            "30/60/90 day milestones",
            "Experiment ideas with expected impact",
            "KPI dashboard template",
        ],
        "credit_cost": 1,
        "output_schema": "plan_30_60_90",
        "form_fields": [
            {
                "id": "business_description",
                "label": "Describe your business",
                "type": "textarea",
                "required": True,
            },
            {
                "id": "current_revenue",
                "label": "Current monthly revenue range",
                "type": "select",
                "options": [
                    {"label": "Pre-revenue", "value": "pre_revenue"},
                    {"label": "$0 - $10K/mo", "value": "0_10k"},
                    {"label": "$10K - $50K/mo", "value": "10k_50k"},
                    {"label": "$50K - $200K/mo", "value": "50k_200k"},
                    {"label": "$200K+/mo", "value": "200k_plus"},
                ],
            },
            {
                "id": "primary_channel",
                "label": "Primary growth channel today",
                "type": "select",
                "options": [
                    {"label": "Word of mouth / referrals", "value": "referrals"},
                    {"label": "Paid ads (Google, Meta)", "value": "paid_ads"},
                    {"label": "Content / SEO", "value": "content_seo"},
                    {"label": "Outbound sales", "value": "outbound"},
                    {"label": "Partnerships", "value": "partnerships"},
                    {"label": "Other / None", "value": "other"},
                ],
            },
            {
                "id": "growth_target",
                "label": "What does success look like in 90 days?",
                "type": "textarea",
                "required": True,
            },
            {
                "id": "constraints",
                "label": "Constraints or context",
                "type": "textarea",
            },
        ],
        "steps": [
            {
                "id": "plan",
                "agent_role": "planner",
                "name": "Planner",
                "description": "Scopes the growth question",
                "instructions": "planner",
            },
            {
                "id": "research_channels",
                "agent_role": "researcher",
                "name": "Channel Researcher",
                "description": "Evaluates acquisition channels",
                "instructions": "researcher",
                "depends_on": ["plan"],
                "parallel_group": "research",
            },
            {
                "id": "research_benchmarks",
                "agent_role": "researcher",
                "name": "Benchmark Analyst",
                "description": "Compares performance against benchmarks",
                "instructions": "researcher",
                "depends_on": ["plan"],
                "parallel_group": "research",
            },
            {
                "id": "strategize",
                "agent_role": "strategist",
                "name": "Growth Strategist",
                "description": "Builds the prioritized growth roadmap",
                "instructions": "strategist",
                "depends_on": ["research_channels", "research_benchmarks"],
            },
            {
                "id": "edit",
                "agent_role": "editor",
                "name": "Editor",
                "description": "Polishes the final deliverable",
                "instructions": "editor",
                "depends_on": ["strategize"],
            },
        ],
    },
    {
        "id": "sop-builder",
        "name": "SOP Builder",
        "description": (
            "Turn how a process works today into a clear standard operating "
            "procedure your team can follow."
        ),
        "category": "Operations",
        "tagline": "Document it once. Run it the same way every time.",
        "what_you_get": [
            "Step-by-step procedure",
            "Roles & responsibilities",
            "Quality checkpoints",
            "Common failure points",
        ],
        "credit_cost": 1,
        "output_schema": "findings",
        "form_fields": [
            {
                "id": "process_name",
                "label": "What process do you want to document?",
                "type": "text",
                "required": True,
            },
            {
                "id": "process_description",
                "label": "Describe how this process works today",
                "type": "textarea",
                "required": True,
            },
            {
                "id": "audience",
                "label": "Who will use this SOP?",
                "type": "text",
            },
            {
                "id": "pain_points",
                "label": "What goes wrong with this process today?",
                "type": "textarea",
            },
        ],
        "steps": [
            {
                "id": "plan",
                "agent_role": "planner",
                "name": "Planner",
                "description": "Breaks the process into areas to document",
                "instructions": "planner",
            },
            {
                "id": "research_docs",
                "agent_role": "researcher",
                "name": "Document Analyst",
                "description": "Extracts the current process from your files",
                "instructions": "researcher",
                "depends_on": ["plan"],
            },
            {
                "id": "strategize",
                "agent_role": "strategist",
                "name": "Process Designer",
                "description": "Designs the improved procedure",
                "instructions": "strategist",
                "depends_on": ["research_docs"],
            },
            {
                "id": "edit",
                "agent_role": "editor",
                "name": "Technical Writer",
                "description": "Writes the final SOP",
                "instructions": "editor",
                "depends_on": ["strategize"],
            },
        ],
    },
]


def builtin_templates() -> List[WorkflowTemplate]:
    return [WorkflowTemplate.model_validate(data) for data in BUILTIN_TEMPLATE_DATA]
