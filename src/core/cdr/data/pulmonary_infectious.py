"""
Pulmonary and infectious disease rules: pneumonia severity, sepsis screening, pharyngitis.
Sources: Lim et al. (CURB-65, 2003), Seymour et al. (qSOFA, 2016), McIsaac et al. (1998).
"""

from ..models import (
    Component,
    ComponentOption,
    ComponentSource,
    ComponentType,
    NumericRange,
    Scoring,
    ScoringMethod,
    StructuredRule,
)

_BOOL = ComponentType.BOOLEAN
_S2 = ComponentSource.SECTION2

PULMONARY_INFECTIOUS_RULES = [
    StructuredRule(
        id="curb65",
        name="CURB-65",
        full_name="CURB-65 Severity Score for Community-Acquired Pneumonia",
        category="PULMONARY",
        application="Estimates mortality risk in community-acquired pneumonia to guide disposition.",
        applicable_chief_complaints=["cough", "dyspnea", "fever", "pneumonia",
                                     "respiratory_distress"],
        keywords=["CURB-65", "pneumonia", "CAP", "community-acquired pneumonia",
                  "mortality risk", "severity"],
        required_tests=["bun", "chest_xray"],
        components=[
            Component(id="confusion", label="Confusion (new mental confusion)", type=_BOOL, value=1),
            Component(id="bun_gt_19", label="BUN > 19 mg/dL (7 mmol/L)", type=_BOOL, source=_S2,
                      auto_populate_from="test_result", value=1),
            Component(id="respiratory_rate_gte_30", label="Respiratory rate >= 30", type=_BOOL,
                      auto_populate_from="vital_signs", value=1),
            Component(id="bp_systolic_lt_90_or_diastolic_lte_60",
                      label="BP: systolic <90 or diastolic <=60 mmHg", type=_BOOL,
                      auto_populate_from="vital_signs", value=1),
            Component(id="age_gte_65", label="Age >= 65", type=_BOOL,
                      auto_populate_from="narrative_analysis", value=1),
        ],
        scoring=Scoring(
            method=ScoringMethod.SUM,
            ranges=[
                NumericRange(0, 1, "Low",
                             "0.6-2.7% 30-day mortality. Consider outpatient treatment."),
                NumericRange(2, 2, "Moderate",
                             "6.8% 30-day mortality. Consider short inpatient stay or closely "
                             "supervised outpatient treatment."),
                NumericRange(3, 5, "High",
                             "14-27.8% 30-day mortality. Hospitalize. Consider ICU admission "
                             "if score 4-5."),
            ],
        ),
        suggested_treatments={
            "High": ["iv_antibiotics", "icu_admission_if_4_5", "blood_cultures",
                     "respiratory_support"],
            "Moderate": ["oral_or_iv_antibiotics", "inpatient_observation", "blood_cultures"],
            "Low": ["oral_antibiotics", "outpatient_follow_up_48h"],
        },
    ),
    StructuredRule(
        id="qsofa",
        name="qSOFA",
        full_name="Quick Sequential Organ Failure Assessment",
        category="INFECTIOUS DISEASE",
        application="Identifies patients with suspected infection at risk for poor outcomes.",
        applicable_chief_complaints=["fever", "sepsis", "infection", "altered_mental_status",
                                     "hypotension", "tachypnea"],
        keywords=["qSOFA", "sepsis", "quick SOFA", "organ failure", "infection", "mortality",
                  "sepsis screening"],
        components=[
            Component(id="altered_mentation", label="Altered mentation (GCS <15)", type=_BOOL,
                      value=1),
            Component(id="respiratory_rate_gte_22", label="Respiratory rate >= 22/min", type=_BOOL,
                      auto_populate_from="vital_signs", value=1),
            Component(id="systolic_bp_lte_100", label="Systolic blood pressure <= 100 mmHg",
                      type=_BOOL, auto_populate_from="vital_signs", value=1),
        ],
        scoring=Scoring(
            method=ScoringMethod.SUM,
            ranges=[
                NumericRange(0, 1, "Low",
                             "Low risk of poor outcome. Continue standard evaluation."),
                NumericRange(2, 3, "High",
                             ">=2 criteria met. High risk of poor outcome (3-14x increased "
                             "mortality). Assess for organ dysfunction, consider sepsis workup, "
                             "and escalate care."),
            ],
        ),
        suggested_treatments={
            "High": ["blood_cultures", "lactate", "iv_fluids_30ml_kg",
                     "broad_spectrum_antibiotics", "icu_consult"],
        },
    ),
    StructuredRule(
        id="centor_mcisaac",
        name="Centor/McIsaac",
        full_name="Modified Centor Score (McIsaac) for Strep Pharyngitis",
        category="INFECTIOUS DISEASE",
        application="Estimates likelihood of strep pharyngitis to guide testing and treatment.",
        applicable_chief_complaints=["sore_throat", "pharyngitis", "throat_pain", "odynophagia"],
        keywords=["Centor", "McIsaac", "strep throat", "pharyngitis", "GAS", "rapid strep",
                  "group A strep"],
        required_tests=["rapid_strep_test"],
        components=[
            Component(id="tonsillar_exudates", label="Tonsillar exudates or swelling", type=_BOOL,
                      value=1),
            Component(id="tender_anterior_cervical_lymph",
                      label="Tender/swollen anterior cervical lymph nodes", type=_BOOL, value=1),
            Component(id="fever", label="Temperature >38C (100.4F)", type=_BOOL, value=1),
            Component(id="absence_of_cough", label="Absence of cough", type=_BOOL, value=1),
            Component(
                id="age_modifier", label="Age modifier", type=ComponentType.SELECT,
                auto_populate_from="narrative_analysis",
                options=[
                    ComponentOption("3-14 years", 1),
                    ComponentOption("15-44 years", 0),
                    ComponentOption(">=45 years", -1),
                ],
            ),
        ],
        scoring=Scoring(
            method=ScoringMethod.SUM,
            ranges=[
                NumericRange(-1, 0, "Very Low",
                             "1-2.5% likelihood of strep. No testing or antibiotics recommended."),
                NumericRange(1, 1, "Low",
                             "5-10% likelihood of strep. Consider rapid strep test (optional)."),
                NumericRange(2, 3, "Moderate",
                             "11-35% likelihood of strep. Rapid strep test recommended."),
                NumericRange(4, 5, "High",
                             "25-51% likelihood of strep. Empiric antibiotics or rapid strep test."),
            ],
        ),
        suggested_treatments={
            "High": ["rapid_strep_test", "empiric_antibiotics_penicillin_or_amoxicillin"],
            "Moderate": ["rapid_strep_test", "antibiotics_if_positive"],
            "Low": ["symptomatic_treatment"],
        },
    ),
]
