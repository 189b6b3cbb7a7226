"""
Default QHSE knowledge catalog.

Five interconnected modules (project quality, quality management, health &
safety, environmental, energy), their factor tables, cross-module advice and
the reference library cited in recommendations.
"""

from qhsecast.knowledge.schemas import (
    FactorDefinition,
    FactorDirection,
    FactorLevel,
    ModuleConnection,
    ModuleKnowledge,
    ReferenceLibrary,
    Threshold,
)

PROJECT_QUALITY = "project-quality"
QUALITY_MANAGEMENT = "quality-management"
HEALTH_SAFETY = "health-safety"
ENVIRONMENTAL = "environmental"
ENERGY = "energy"

ASC = FactorDirection.ASCENDING
DESC = FactorDirection.DESCENDING


def _advice(critical: str, warning: str, good: str) -> dict[FactorLevel, str]:
    return {
        FactorLevel.CRITICAL: critical,
        FactorLevel.WARNING: warning,
        FactorLevel.GOOD: good,
    }


# ── Module connections ─────────────────────────────────────────────────


MODULE_CONNECTIONS: tuple[ModuleConnection, ...] = (
    ModuleConnection(
        id=PROJECT_QUALITY,
        name="Project Quality",
        impacted_modules=(QUALITY_MANAGEMENT, HEALTH_SAFETY, ENVIRONMENTAL, ENERGY),
        trigger_events=(
            "project_created", "project_updated", "project_deleted",
            "manhours_changed", "kpi_changed",
        ),
    ),
    ModuleConnection(
        id=QUALITY_MANAGEMENT,
        name="Quality Management",
        impacted_modules=(PROJECT_QUALITY, HEALTH_SAFETY),
        trigger_events=("audit_scheduled", "cars_opened", "cars_closed", "compliance_changed"),
    ),
    ModuleConnection(
        id=HEALTH_SAFETY,
        name="Health & Safety",
        impacted_modules=(PROJECT_QUALITY, QUALITY_MANAGEMENT, ENVIRONMENTAL),
        trigger_events=("incident_reported", "safety_audit", "ppe_compliance", "risk_assessment"),
    ),
    ModuleConnection(
        id=ENVIRONMENTAL,
        name="Environmental",
        impacted_modules=(PROJECT_QUALITY, ENERGY, HEALTH_SAFETY),
        trigger_events=(
            "carbon_emission_change", "waste_generated",
            "compliance_check", "sustainability_goal",
        ),
    ),
    ModuleConnection(
        id=ENERGY,
        name="Energy",
        impacted_modules=(ENVIRONMENTAL, PROJECT_QUALITY),
        trigger_events=(
            "consumption_spike", "efficiency_improvement",
            "renewable_adoption", "cost_optimization",
        ),
    ),
)


# ── Factor tables ──────────────────────────────────────────────────────


PROJECT_QUALITY_KNOWLEDGE = ModuleKnowledge(
    module_id=PROJECT_QUALITY,
    name="Project Quality",
    factors=(
        FactorDefinition(
            key="cars_open",
            attribute="carsOpen",
            weight=0.3,
            threshold=Threshold(critical=5, warning=3, good=1),
            direction=DESC,
            impacts=("quality-score", "project-health", "audit-readiness"),
            recommendations=_advice(
                "Immediate action required: High number of open CARs may delay project closure",
                "Multiple open CARs detected. Schedule resolution review meeting",
                "Good management of corrective actions",
            ),
        ),
        FactorDefinition(
            key="quality_kpi",
            attribute="projectKPIsAchievedPercent",
            weight=0.25,
            threshold=Threshold(critical=60, warning=75, good=85),
            direction=ASC,
            impacts=("project-success", "client-satisfaction"),
            recommendations=_advice(
                "Critical: Quality KPIs below acceptable threshold. Implement improvement plan",
                "KPIs trending below target. Review quality processes",
                "Quality KPIs meet or exceed targets",
            ),
        ),
        FactorDefinition(
            key="audit_delays",
            attribute="delayInAuditsNoDays",
            weight=0.2,
            threshold=Threshold(critical=14, warning=7, good=0),
            direction=DESC,
            impacts=("compliance", "project-schedule"),
            recommendations=_advice(
                "Critical delay in audits. Reschedule immediately and assess impact",
                "Audit delays detected. Coordinate with audit team",
                "All audits conducted on schedule",
            ),
        ),
        FactorDefinition(
            key="manhours_balance",
            attribute="manhoursBalance",
            weight=0.15,
            threshold=Threshold(critical=10, warning=20, good=30),
            direction=ASC,
            impacts=("resource-planning", "budget-management"),
            recommendations=_advice(
                "Critical: Low manhours balance. Request additional allocation",
                "Manhours running low. Monitor closely and plan allocation",
                "Adequate manhours balance for quality activities",
            ),
        ),
        FactorDefinition(
            key="project_completion",
            attribute="projectCompletionPercent",
            weight=0.1,
            threshold=Threshold(critical=100, warning=85, good=70),
            direction=DESC,
            impacts=("delivery-timeline", "closure-readiness"),
            recommendations=_advice(
                "Project nearing completion. Initiate closure checklist",
                "Project in final stages. Begin closure preparations",
                "Project on track for successful completion",
            ),
        ),
    ),
    cross_module_recommendations={
        QUALITY_MANAGEMENT: (
            "Schedule quality audits based on project phase",
            "Implement continuous improvement initiatives",
            "Track non-conformances across all projects",
        ),
        HEALTH_SAFETY: (
            "Ensure safety protocols align with quality standards",
            "Coordinate safety inspections with quality audits",
            "Link safety incidents to quality impact assessment",
        ),
        ENVIRONMENTAL: (
            "Monitor environmental compliance as part of quality metrics",
            "Track carbon footprint in project quality reports",
            "Integrate sustainability goals with quality objectives",
        ),
        ENERGY: (
            "Include energy efficiency in quality KPIs",
            "Monitor energy consumption patterns for optimization",
            "Link renewable energy adoption to project quality",
        ),
    },
    relevant_fields=("carsOpen", "obsOpen", "projectKPIsAchievedPercent", "manhoursBalance"),
    reference_topics=("quality",),
)


QUALITY_MANAGEMENT_KNOWLEDGE = ModuleKnowledge(
    module_id=QUALITY_MANAGEMENT,
    name="Quality Management",
    factors=(
        FactorDefinition(
            key="audit_completion_rate",
            weight=0.35,
            threshold=Threshold(critical=60, warning=80, good=95),
            direction=ASC,
            impacts=("compliance-status", "certification-readiness"),
            recommendations=_advice(
                "Low audit completion rate. Review and accelerate audit schedule",
                "Audit completion needs improvement. Allocate resources",
                "Strong audit completion performance",
            ),
        ),
        FactorDefinition(
            key="nc_closure_rate",
            weight=0.3,
            threshold=Threshold(critical=50, warning=70, good=85),
            direction=ASC,
            impacts=("quality-performance", "process-improvement"),
            recommendations=_advice(
                "Many non-conformances remain open. Prioritize closure actions",
                "NC closure rate below target. Expedite corrective actions",
                "Effective NC management and closure process",
            ),
        ),
        FactorDefinition(
            key="compliance_score",
            weight=0.25,
            threshold=Threshold(critical=70, warning=85, good=95),
            direction=ASC,
            impacts=("regulatory-compliance", "audit-readiness"),
            recommendations=_advice(
                "Compliance gaps identified. Immediate remediation required",
                "Compliance score needs improvement. Review procedures",
                "High compliance standards maintained",
            ),
        ),
        FactorDefinition(
            key="documentation_quality",
            weight=0.1,
            threshold=Threshold(critical=60, warning=75, good=90),
            direction=ASC,
            impacts=("audit-success", "knowledge-management"),
            recommendations=_advice(
                "Documentation gaps affecting compliance. Update immediately",
                "Improve documentation quality and completeness",
                "Comprehensive documentation maintained",
            ),
        ),
    ),
    cross_module_recommendations={
        PROJECT_QUALITY: (
            "Align project quality plans with organizational standards",
            "Use audit findings to improve project processes",
            "Track quality metrics across all active projects",
        ),
        HEALTH_SAFETY: (
            "Integrate safety audits with quality management system",
            "Cross-reference safety incidents with quality non-conformances",
            "Unified reporting for quality and safety compliance",
        ),
    },
    relevant_fields=("carsOpen", "carsClosed", "delayInAuditsNoDays"),
    reference_topics=("quality",),
)


HEALTH_SAFETY_KNOWLEDGE = ModuleKnowledge(
    module_id=HEALTH_SAFETY,
    name="Health & Safety",
    factors=(
        FactorDefinition(
            key="incident_frequency",
            weight=0.35,
            threshold=Threshold(critical=5, warning=2, good=0),
            direction=DESC,
            impacts=("safety-performance", "project-reputation"),
            recommendations=_advice(
                "High incident frequency. Conduct urgent safety review",
                "Multiple incidents detected. Enhance safety protocols",
                "Zero or minimal incidents. Maintain safety standards",
            ),
        ),
        FactorDefinition(
            key="safety_training_compliance",
            weight=0.25,
            threshold=Threshold(critical=70, warning=85, good=95),
            direction=ASC,
            impacts=("workforce-readiness", "regulatory-compliance"),
            recommendations=_advice(
                "Critical training gaps. Schedule mandatory safety training",
                "Training compliance below target. Plan training sessions",
                "Strong safety training compliance",
            ),
        ),
        FactorDefinition(
            key="ppe_compliance",
            weight=0.2,
            threshold=Threshold(critical=75, warning=90, good=98),
            direction=ASC,
            impacts=("worker-safety", "incident-prevention"),
            recommendations=_advice(
                "Low PPE compliance. Enforce PPE requirements immediately",
                "PPE compliance needs improvement. Conduct awareness program",
                "Excellent PPE compliance across workforce",
            ),
        ),
        FactorDefinition(
            key="risk_assessment_coverage",
            weight=0.2,
            threshold=Threshold(critical=60, warning=80, good=95),
            direction=ASC,
            impacts=("hazard-management", "prevention-effectiveness"),
            recommendations=_advice(
                "Many activities lack risk assessment. Complete assessments urgently",
                "Improve risk assessment coverage for all activities",
                "Comprehensive risk assessment program in place",
            ),
        ),
    ),
    cross_module_recommendations={
        PROJECT_QUALITY: (
            "Link safety performance to project quality metrics",
            "Include safety audit findings in project reviews",
            "Track safety manhours alongside quality manhours",
        ),
        QUALITY_MANAGEMENT: (
            "Integrate safety management with quality system",
            "Use QMS tools for safety process improvement",
            "Align safety and quality audit schedules",
        ),
        ENVIRONMENTAL: (
            "Monitor environmental health impacts",
            "Coordinate hazardous waste management",
            "Link environmental hazards to safety risks",
        ),
    },
    relevant_fields=("carsOpen", "obsOpen"),
    reference_topics=("safety",),
)


ENVIRONMENTAL_KNOWLEDGE = ModuleKnowledge(
    module_id=ENVIRONMENTAL,
    name="Environmental",
    factors=(
        FactorDefinition(
            key="carbon_footprint",     # tons CO2e
            weight=0.3,
            threshold=Threshold(critical=1000, warning=500, good=250),
            direction=DESC,
            impacts=("sustainability-goals", "climate-impact"),
            recommendations=_advice(
                "High carbon emissions. Implement reduction strategies urgently",
                "Carbon footprint above target. Review reduction opportunities",
                "Carbon emissions within sustainable targets",
            ),
        ),
        FactorDefinition(
            key="waste_management_score",
            weight=0.25,
            threshold=Threshold(critical=60, warning=75, good=90),
            direction=ASC,
            impacts=("environmental-compliance", "circular-economy"),
            recommendations=_advice(
                "Poor waste management. Improve segregation and recycling",
                "Enhance waste management practices and reporting",
                "Effective waste management and recycling program",
            ),
        ),
        FactorDefinition(
            key="water_conservation",
            weight=0.2,
            threshold=Threshold(critical=50, warning=70, good=85),
            direction=ASC,
            impacts=("resource-efficiency", "sustainability"),
            recommendations=_advice(
                "Water usage inefficient. Implement conservation measures",
                "Improve water management and reduce consumption",
                "Strong water conservation practices",
            ),
        ),
        FactorDefinition(
            key="biodiversity_impact",
            weight=0.15,
            threshold=Threshold(critical=30, warning=50, good=80),
            direction=ASC,
            impacts=("ecological-balance", "regulatory-compliance"),
            recommendations=_advice(
                "Significant biodiversity impact. Implement mitigation plan",
                "Monitor and minimize impact on local ecosystems",
                "Minimal biodiversity impact with protective measures",
            ),
        ),
        FactorDefinition(
            key="compliance_status",
            weight=0.1,
            threshold=Threshold(critical=70, warning=85, good=95),
            direction=ASC,
            impacts=("regulatory-adherence", "permit-requirements"),
            recommendations=_advice(
                "Environmental compliance gaps. Remediate immediately",
                "Improve compliance with environmental regulations",
                "Full environmental compliance maintained",
            ),
        ),
    ),
    cross_module_recommendations={
        PROJECT_QUALITY: (
            "Include environmental metrics in project quality reports",
            "Track environmental KPIs alongside quality KPIs",
            "Link environmental incidents to project quality impact",
        ),
        ENERGY: (
            "Coordinate renewable energy adoption for carbon reduction",
            "Align energy efficiency with environmental goals",
            "Track energy-related carbon emissions",
        ),
        HEALTH_SAFETY: (
            "Monitor environmental health hazards",
            "Coordinate hazardous material management",
            "Link environmental risks to safety protocols",
        ),
    },
    relevant_fields=("projectKPIsAchievedPercent",),
    reference_topics=("environmental",),
)


ENERGY_KNOWLEDGE = ModuleKnowledge(
    module_id=ENERGY,
    name="Energy",
    factors=(
        FactorDefinition(
            key="energy_efficiency",
            weight=0.3,
            threshold=Threshold(critical=60, warning=75, good=85),
            direction=ASC,
            impacts=("operational-cost", "carbon-footprint"),
            recommendations=_advice(
                "Low energy efficiency. Implement optimization measures",
                "Energy efficiency below target. Identify improvement areas",
                "Strong energy efficiency performance",
            ),
        ),
        FactorDefinition(
            key="renewable_percentage",
            weight=0.25,
            threshold=Threshold(critical=20, warning=40, good=60),
            direction=ASC,
            impacts=("sustainability-goals", "carbon-neutrality"),
            recommendations=_advice(
                "Low renewable energy usage. Accelerate green energy adoption",
                "Increase renewable energy portfolio",
                "Strong renewable energy adoption",
            ),
        ),
        FactorDefinition(
            key="peak_demand_management",
            weight=0.2,
            threshold=Threshold(critical=80, warning=65, good=50),
            direction=DESC,
            impacts=("cost-optimization", "grid-stability"),
            recommendations=_advice(
                "High peak demand. Implement load shifting strategies",
                "Optimize peak demand through smart scheduling",
                "Effective peak demand management",
            ),
        ),
        FactorDefinition(
            key="energy_cost_per_unit",     # USD per kWh
            weight=0.15,
            threshold=Threshold(critical=0.15, warning=0.12, good=0.09),
            direction=DESC,
            impacts=("budget-efficiency", "roi"),
            recommendations=_advice(
                "High energy costs. Review contracts and optimize consumption",
                "Energy costs above industry average. Seek optimization",
                "Competitive energy costs maintained",
            ),
        ),
        FactorDefinition(
            key="smart_technology_adoption",
            weight=0.1,
            threshold=Threshold(critical=30, warning=50, good=70),
            direction=ASC,
            impacts=("automation-level", "monitoring-capability"),
            recommendations=_advice(
                "Low smart technology adoption. Invest in monitoring systems",
                "Increase smart energy management technology",
                "Strong smart technology deployment",
            ),
        ),
    ),
    cross_module_recommendations={
        ENVIRONMENTAL: (
            "Align energy strategy with carbon reduction targets",
            "Track energy-related environmental impact",
            "Coordinate renewable energy with sustainability goals",
        ),
        PROJECT_QUALITY: (
            "Include energy efficiency in project specifications",
            "Monitor energy consumption by project",
            "Link energy performance to project quality metrics",
        ),
    },
    relevant_fields=("projectKPIsAchievedPercent",),
    reference_topics=("energy",),
)


MODULE_KNOWLEDGE: tuple[ModuleKnowledge, ...] = (
    PROJECT_QUALITY_KNOWLEDGE,
    QUALITY_MANAGEMENT_KNOWLEDGE,
    HEALTH_SAFETY_KNOWLEDGE,
    ENVIRONMENTAL_KNOWLEDGE,
    ENERGY_KNOWLEDGE,
)


# ── Reference library ──────────────────────────────────────────────────


REFERENCE_LIBRARY = ReferenceLibrary(
    standards={
        "quality": (
            "ISO 9001:2015 Quality Management Systems",
            "ISO 19011:2018 Audit Management",
            "ASME B31.3 Process Piping Standards",
            "API 510 Pressure Vessel Inspection",
            "ASTM International Standards",
        ),
        "safety": (
            "ISO 45001:2018 Occupational Health & Safety",
            "OSHA Regulations and Guidelines",
            "NEBOSH Safety Management",
            "NFPA Fire Protection Standards",
            "ILO Safety Conventions",
        ),
        "environmental": (
            "ISO 14001:2015 Environmental Management",
            "GHG Protocol Carbon Accounting",
            "EPA Environmental Regulations",
            "UN Sustainable Development Goals",
            "Paris Agreement Climate Targets",
        ),
        "energy": (
            "ISO 50001:2018 Energy Management",
            "LEED Certification Standards",
            "Energy Star Guidelines",
            "IEC 61850 Smart Grid Standards",
            "IEEE 2030 Energy Efficiency",
        ),
    },
    best_practices=(
        "Continuous improvement methodologies (Kaizen, Six Sigma)",
        "Risk-based thinking and FMEA analysis",
        "Predictive maintenance strategies",
        "Integrated management systems approach",
        "Digital transformation and Industry 4.0 integration",
    ),
    keywords={
        "quality": ("quality", "audit"),
        "safety": ("safety", "health"),
        "environmental": ("environment", "carbon"),
        "energy": ("energy",),
    },
)
