"""
Cardiovascular decision rules: chest pain, venous thromboembolism, atrial fibrillation.
Sources: Six et al. (HEART, 2008), Kline et al. (PERC, 2004), Wells et al. (PE 2000, DVT 2003),
Lip et al. (CHA2DS2-VASc, 2010).
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

_CAT = "CARDIOVASCULAR"
_BOOL = ComponentType.BOOLEAN
_SELECT = ComponentType.SELECT
_S1 = ComponentSource.SECTION1
_S2 = ComponentSource.SECTION2

CARDIOVASCULAR_RULES = [
    StructuredRule(
        id="heart",
        name="HEART Score",
        full_name="History, ECG, Age, Risk Factors, Troponin",
        category=_CAT,
        application=(
            "Risk stratifies emergency department chest pain patients for 6-week "
            "risk of major adverse cardiac events (MACE)."
        ),
        applicable_chief_complaints=["chest_pain", "dyspnea", "syncope"],
        keywords=["HEART", "chest pain", "ACS", "MACE", "troponin", "cardiac risk",
                  "acute coronary syndrome"],
        required_tests=["troponin", "ecg"],
        components=[
            Component(
                id="history", label="History", type=_SELECT, source=_S1,
                auto_populate_from="narrative_analysis",
                options=[
                    ComponentOption("Slightly suspicious", 0),
                    ComponentOption("Moderately suspicious", 1),
                    ComponentOption("Highly suspicious", 2),
                ],
            ),
            Component(
                id="ecg", label="ECG", type=_SELECT, source=_S2,
                auto_populate_from="test_result",
                options=[
                    ComponentOption("Normal", 0),
                    ComponentOption("Non-specific repolarization abnormality", 1),
                    ComponentOption("Significant ST deviation", 2),
                ],
            ),
            Component(
                id="age", label="Age", type=_SELECT, source=_S1,
                auto_populate_from="narrative_analysis",
                options=[
                    ComponentOption("<45", 0),
                    ComponentOption("45-64", 1),
                    ComponentOption(">=65", 2),
                ],
            ),
            Component(
                id="risk_factors", label="Risk Factors", type=_SELECT, source=_S1,
                auto_populate_from="narrative_analysis",
                options=[
                    ComponentOption("No known risk factors", 0),
                    ComponentOption("1-2 risk factors", 1),
                    ComponentOption(">=3 risk factors or history of atherosclerotic disease", 2),
                ],
            ),
            Component(
                id="troponin", label="Troponin", type=_SELECT, source=_S2,
                auto_populate_from="test_result",
                options=[
                    ComponentOption("<=normal limit", 0),
                    ComponentOption("1-3x normal limit", 1),
                    ComponentOption(">3x normal limit", 2),
                ],
            ),
        ],
        scoring=Scoring(
            method=ScoringMethod.SUM,
            ranges=[
                NumericRange(0, 3, "Low", "1.7% risk of MACE at 6 weeks. Consider early discharge."),
                NumericRange(4, 6, "Moderate",
                             "12-16.6% risk of MACE at 6 weeks. Consider admission for observation."),
                NumericRange(7, 10, "High",
                             "50-65% risk of MACE at 6 weeks. Early invasive measures indicated."),
            ],
        ),
        suggested_treatments={
            "High": ["aspirin_325", "heparin_drip", "cardiology_consult", "admit_telemetry"],
            "Moderate": ["aspirin_325", "serial_troponins", "observation", "cardiology_consult"],
            "Low": ["discharge_with_follow_up", "outpatient_stress_test"],
        },
    ),
    StructuredRule(
        id="perc",
        name="PERC Rule",
        full_name="Pulmonary Embolism Rule-out Criteria",
        category=_CAT,
        application="Rules out pulmonary embolism in low-risk patients without further testing.",
        applicable_chief_complaints=["chest_pain", "dyspnea", "pleuritic_chest_pain", "tachycardia"],
        keywords=["PERC", "pulmonary embolism", "PE rule-out", "chest pain", "dyspnea", "VTE"],
        components=[
            Component(id="age_gte_50", label="Age >= 50", type=_BOOL, source=_S1,
                      auto_populate_from="narrative_analysis", value=1),
            Component(id="hr_gte_100", label="Heart rate >= 100", type=_BOOL, source=_S1,
                      auto_populate_from="vital_signs", value=1),
            Component(id="sao2_lt_95", label="SpO2 < 95% on room air", type=_BOOL, source=_S1,
                      auto_populate_from="vital_signs", value=1),
            Component(id="unilateral_leg_swelling", label="Unilateral leg swelling", type=_BOOL,
                      source=_S1, auto_populate_from="physical_exam", value=1),
            Component(id="hemoptysis", label="Hemoptysis", type=_BOOL, source=_S1,
                      auto_populate_from="narrative_analysis", value=1),
            Component(id="recent_surgery_trauma", label="Surgery or trauma within 4 weeks",
                      type=_BOOL, source=_S1, auto_populate_from="narrative_analysis", value=1),
            Component(id="prior_pe_dvt", label="Prior PE or DVT", type=_BOOL, source=_S1,
                      auto_populate_from="narrative_analysis", value=1),
            Component(id="hormone_use", label="Exogenous estrogen use", type=_BOOL, source=_S1,
                      auto_populate_from="narrative_analysis", value=1),
        ],
        scoring=Scoring(
            method=ScoringMethod.THRESHOLD,
            ranges=[
                NumericRange(0, 0, "Low",
                             "All 8 criteria negative. PE effectively ruled out (<2% risk). "
                             "No further workup needed."),
                NumericRange(1, 8, "Not Low",
                             ">=1 criterion positive. PERC rule cannot exclude PE. "
                             "Proceed to D-dimer or CTPA."),
            ],
        ),
        suggested_treatments={
            "Not Low": ["d_dimer", "ctpa_if_d_dimer_positive", "anticoagulation_if_confirmed"],
        },
    ),
    StructuredRule(
        id="wells_pe",
        name="Wells PE",
        full_name="Wells Criteria for Pulmonary Embolism",
        category=_CAT,
        application="Estimates pretest probability of pulmonary embolism.",
        applicable_chief_complaints=["chest_pain", "dyspnea", "pleuritic_chest_pain",
                                     "tachycardia", "hemoptysis"],
        keywords=["Wells", "PE", "pulmonary embolism", "DVT", "VTE", "pretest probability"],
        required_tests=["d_dimer", "ctpa"],
        components=[
            Component(id="clinical_signs_dvt", label="Clinical signs/symptoms of DVT",
                      type=_BOOL, value=3),
            Component(id="pe_most_likely", label="PE is #1 diagnosis or equally likely",
                      type=_BOOL, value=3),
            Component(id="hr_gt_100", label="Heart rate > 100", type=_BOOL, value=1.5),
            Component(id="immobilization_surgery",
                      label="Immobilization/surgery in previous 4 weeks", type=_BOOL, value=1.5),
            Component(id="previous_pe_dvt", label="Previous PE or DVT", type=_BOOL, value=1.5),
            Component(id="hemoptysis", label="Hemoptysis", type=_BOOL, value=1),
            Component(id="malignancy", label="Malignancy (treatment within 6 months or palliative)",
                      type=_BOOL, value=1),
        ],
        scoring=Scoring(
            method=ScoringMethod.SUM,
            ranges=[
                NumericRange(0, 1, "Low",
                             "Low probability PE (~1.3%). Consider PERC rule or D-dimer."),
                NumericRange(2, 6, "Moderate",
                             "Moderate probability PE (~16.2%). D-dimer recommended."),
                NumericRange(7, 12.5, "High",
                             "High probability PE (~37.5%). Consider empiric anticoagulation and CTPA."),
            ],
        ),
        suggested_treatments={
            "High": ["empiric_anticoagulation", "ctpa", "cardiology_or_pulm_consult"],
            "Moderate": ["d_dimer", "ctpa_if_positive", "anticoagulation_if_confirmed"],
            "Low": ["d_dimer", "perc_rule_if_low_pretest"],
        },
    ),
    StructuredRule(
        id="wells_dvt",
        name="Wells DVT",
        full_name="Wells Criteria for Deep Vein Thrombosis",
        category=_CAT,
        application="Estimates pretest probability of deep vein thrombosis.",
        applicable_chief_complaints=["leg_pain", "leg_swelling", "calf_pain", "unilateral_edema"],
        keywords=["Wells", "DVT", "deep vein thrombosis", "leg swelling", "VTE",
                  "venous thromboembolism"],
        required_tests=["d_dimer", "lower_extremity_ultrasound"],
        components=[
            Component(id="active_cancer",
                      label="Active cancer (treatment within 6 months or palliative)",
                      type=_BOOL, value=1),
            Component(id="paralysis_paresis",
                      label="Paralysis, paresis, or recent plaster immobilization of lower extremity",
                      type=_BOOL, value=1),
            Component(id="bedridden_gt_3days",
                      label="Bedridden >3 days or major surgery within 12 weeks", type=_BOOL, value=1),
            Component(id="tenderness_along_veins",
                      label="Localized tenderness along distribution of deep venous system",
                      type=_BOOL, value=1),
            Component(id="entire_leg_swelling", label="Entire leg swollen", type=_BOOL, value=1),
            Component(id="calf_swelling_gt_3cm",
                      label="Calf swelling >3cm compared to asymptomatic leg", type=_BOOL, value=1),
            Component(id="pitting_edema", label="Pitting edema confined to symptomatic leg",
                      type=_BOOL, value=1),
            Component(id="collateral_veins", label="Collateral superficial veins (non-varicose)",
                      type=_BOOL, value=1),
            Component(id="previous_dvt", label="Previously documented DVT", type=_BOOL, value=1),
            Component(id="alternative_diagnosis",
                      label="Alternative diagnosis at least as likely as DVT", type=_BOOL, value=-2),
        ],
        scoring=Scoring(
            method=ScoringMethod.SUM,
            ranges=[
                NumericRange(-2, 0, "Low", "Low probability DVT (~5%). D-dimer to rule out."),
                NumericRange(1, 2, "Moderate",
                             "Moderate probability DVT (~17%). D-dimer or ultrasound."),
                NumericRange(3, 9, "High",
                             "High probability DVT (~53%). Ultrasound recommended. "
                             "Consider empiric anticoagulation."),
            ],
        ),
        suggested_treatments={
            "High": ["lower_extremity_ultrasound", "empiric_anticoagulation", "hematology_consult"],
            "Moderate": ["d_dimer", "lower_extremity_ultrasound_if_positive"],
            "Low": ["d_dimer"],
        },
    ),
    StructuredRule(
        id="cha2ds2_vasc",
        name="CHA2DS2-VASc",
        full_name="CHA2DS2-VASc Score for Atrial Fibrillation Stroke Risk",
        category=_CAT,
        application="Estimates annual stroke risk in atrial fibrillation to guide anticoagulation.",
        applicable_chief_complaints=["atrial_fibrillation", "afib", "palpitations",
                                     "irregular_heartbeat"],
        keywords=["CHA2DS2-VASc", "atrial fibrillation", "stroke risk", "anticoagulation",
                  "afib", "AF"],
        components=[
            Component(id="chf", label="Congestive Heart Failure", type=_BOOL, value=1),
            Component(id="hypertension", label="Hypertension", type=_BOOL, value=1),
            Component(
                id="age", label="Age", type=_SELECT, auto_populate_from="narrative_analysis",
                options=[
                    ComponentOption("<65", 0),
                    ComponentOption("65-74", 1),
                    ComponentOption(">=75", 2),
                ],
            ),
            Component(id="diabetes", label="Diabetes mellitus", type=_BOOL, value=1),
            Component(id="stroke_tia", label="Prior stroke/TIA/thromboembolism", type=_BOOL, value=2),
            Component(id="vascular_disease",
                      label="Vascular disease (prior MI, PAD, aortic plaque)", type=_BOOL, value=1),
            Component(id="sex_female", label="Sex category (female)", type=_BOOL, value=1),
        ],
        scoring=Scoring(
            method=ScoringMethod.SUM,
            ranges=[
                NumericRange(0, 0, "Low",
                             "0.2% annual stroke risk (males). Anticoagulation not recommended."),
                NumericRange(1, 1, "Low-Moderate",
                             "0.6% annual stroke risk. Consider anticoagulation "
                             "(especially if female with no other risk factors)."),
                NumericRange(2, 3, "Moderate",
                             "2.2-3.2% annual stroke risk. Anticoagulation recommended."),
                NumericRange(4, 9, "High",
                             "4.8-15.2% annual stroke risk. Anticoagulation strongly recommended."),
            ],
        ),
        suggested_treatments={
            "High": ["oral_anticoagulation_doac", "rate_or_rhythm_control", "cardiology_referral"],
            "Moderate": ["oral_anticoagulation_doac", "rate_control", "cardiology_follow_up"],
            "Low-Moderate": ["consider_anticoagulation", "aspirin_alternative", "cardiology_follow_up"],
        },
    ),
]
