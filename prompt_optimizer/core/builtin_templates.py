"""
Built-in templates for the smart_* tool family.
"""

from typing import List

from .templates import AdaptationLevel, Template

SMART_BEGIN_BASIC = """\
{% if flag("user_level", "beginner") %}
Let us start your project step by step:
{% else %}
Initialize project with these specifications:
{% endif %}

Project: {{ project_name }}
Type: {{ project_type }}
{% if business_context %}

Business Context:
- Industry: {{ business_context.industry }}
- Target Users: {{ business_context.target_users }}
{% endif %}
{% if flag("user_level", "advanced") %}

Technical requirements and constraints will be automatically analyzed.
{% endif %}
"""

SMART_PLAN_BASIC = """\
## Project Planning

{% if flag("user_level", "beginner") %}
Here is a simple plan for your project:
{% else %}
Comprehensive project plan:
{% endif %}

### Scope
{% if scope %}
- Budget: ${{ scope.budget }}
- Timeline: {{ scope.timeline }}
{% endif %}

### Technical Stack
{% for item in tech_stack or [] %}
- {{ item }}
{% endfor %}
"""

SMART_PLAN_ANALYSIS = """\
## Requirements Analysis

{% if flag("user_level", "beginner") %}
Analysis of your project requirements:
{% else %}
Comprehensive requirement analysis:
{% endif %}

### Key Requirements
{% for item in requirements or [] %}
- {{ item }}
{% endfor %}

### Constraints
{% for item in constraints or [] %}
- {{ item }}
{% endfor %}
"""

SMART_WRITE_BASIC = """\
{% if flag("output_format", "code") %}
// Generated code for: {{ feature_description }}
{% if flag("user_level", "beginner") %}
// This code includes helpful comments for learning
{% endif %}
{% if tech_stack %}
// Using: {{ tech_stack | join(", ") }}
{% endif %}
{% else %}
Write {{ output_format }} for: {{ feature_description }}
{% if tech_stack %}
Using: {{ tech_stack | join(", ") }}
{% endif %}
{% endif %}
"""

SMART_ORCHESTRATE_PLANNING = """\
## Orchestration Plan

{% if flag("user_level", "beginner") %}
Simple orchestration plan:
{% else %}
Advanced orchestration strategy:
{% endif %}

### Workflow Steps
{% for step in workflow_steps or [] %}
{{ loop.index }}. {{ step }}
{% endfor %}

### Resource Requirements
{% for item in resources or [] %}
- {{ item }}
{% endfor %}

### Constraints
{% for item in constraints or [] %}
- {{ item }}
{% endfor %}
"""

SMART_FINISH_GENERATION = """\
## Project Completion

{% if flag("user_level", "beginner") %}
Final steps to complete your project:
{% else %}
Advanced completion and quality validation:
{% endif %}

### Completion Steps
{% for item in completion_steps or [] %}
- {{ item }}
{% endfor %}

### Quality Checks
{% for item in quality_checks or [] %}
- {{ item }}
{% endfor %}

### Deliverables
{% for item in deliverables or [] %}
- {{ item }}
{% endfor %}
"""


def builtin_templates() -> List[Template]:
    """Fresh copies of the built-in templates, usage counts at zero."""
    return [
        Template(
            id="smart_begin_basic",
            name="Smart Begin Basic Template",
            description="Basic generation template for smart_begin tool",
            tool_name="smart_begin",
            task_type="generation",
            base_tokens=120,
            compression_ratio=0.25,
            quality_score=85,
            variables=("project_name", "project_type", "business_context"),
            adaptation_level=AdaptationLevel.STATIC,
            user_segments=("beginner", "intermediate", "advanced"),
            body=SMART_BEGIN_BASIC,
        ),
        Template(
            id="smart_plan_basic",
            name="Smart Plan Basic Template",
            description="Basic planning template for smart_plan tool",
            tool_name="smart_plan",
            task_type="planning",
            base_tokens=150,
            compression_ratio=0.3,
            quality_score=85,
            variables=("project_name", "scope", "tech_stack"),
            adaptation_level=AdaptationLevel.STATIC,
            user_segments=("intermediate", "advanced"),
            body=SMART_PLAN_BASIC,
        ),
        Template(
            id="smart_plan_analysis",
            name="Smart Plan Analysis Template",
            description="Analysis template for smart_plan tool",
            tool_name="smart_plan",
            task_type="analysis",
            base_tokens=200,
            compression_ratio=0.4,
            quality_score=88,
            variables=("requirements", "constraints", "timeline"),
            adaptation_level=AdaptationLevel.DYNAMIC,
            user_segments=("advanced", "intermediate"),
            body=SMART_PLAN_ANALYSIS,
        ),
        Template(
            id="smart_write_basic",
            name="Smart Write Basic Template",
            description="Basic generation template for smart_write tool",
            tool_name="smart_write",
            task_type="generation",
            base_tokens=100,
            compression_ratio=0.3,
            quality_score=85,
            variables=("feature_description", "tech_stack"),
            adaptation_level=AdaptationLevel.STATIC,
            user_segments=("intermediate", "advanced"),
            body=SMART_WRITE_BASIC,
        ),
        Template(
            id="smart_orchestrate_planning",
            name="Smart Orchestrate Planning Template",
            description="Planning template for smart_orchestrate tool",
            tool_name="smart_orchestrate",
            task_type="planning",
            base_tokens=180,
            compression_ratio=0.35,
            quality_score=90,
            variables=("workflow_steps", "resources", "constraints"),
            adaptation_level=AdaptationLevel.DYNAMIC,
            user_segments=("advanced", "intermediate"),
            body=SMART_ORCHESTRATE_PLANNING,
        ),
        Template(
            id="smart_finish_generation",
            name="Smart Finish Generation Template",
            description="Generation template for smart_finish tool",
            tool_name="smart_finish",
            task_type="generation",
            base_tokens=140,
            compression_ratio=0.3,
            quality_score=87,
            variables=("completion_steps", "quality_checks", "deliverables"),
            adaptation_level=AdaptationLevel.STATIC,
            user_segments=("advanced", "intermediate"),
            body=SMART_FINISH_GENERATION,
        ),
    ]
