"""
Trauma decision rules: head injury, cervical spine, extremity imaging, hemorrhage.
Sources: Kuppermann et al. (PECARN, 2009), Stiell et al. (Ottawa Ankle 1992,
Canadian C-Spine 2001), Hoffman et al. (NEXUS, 2000), Allgöwer (Shock Index, 1967).
"""

from ..models import (
    Component,
    ComponentOption,
    ComponentSource,
    ComponentType,
    NumericRange,
    ProcedureStep,
    Scoring,
    ScoringMethod,
    StructuredRule,
)

_CAT = "TRAUMA"
_BOOL = ComponentType.BOOLEAN
_S1 = ComponentSource.SECTION1

TRAUMA_RULES = [
    StructuredRule(
        id="pecarn",
        name="PECARN",
        full_name="Pediatric Emergency Care Applied Research Network Head Injury Rule",
        category=_CAT,
        application=(
            "Identifies children at very low risk of clinically important traumatic "
            "brain injury after blunt head trauma."
        ),
        applicable_chief_complaints=["head_injury", "head_trauma", "fall", "altered_mental_status"],
        keywords=["PECARN", "pediatric head injury", "head CT", "ciTBI", "pediatric trauma",
                  "blunt head trauma"],
        required_tests=["ct_head"],
        components=[
            Component(
                id="age_group", label="Age Group", type=ComponentType.SELECT, source=_S1,
                auto_populate_from="narrative_analysis",
                options=[
                    ComponentOption("<2 years", 0),
                    ComponentOption(">=2 years", 1),
                ],
            ),
            Component(id="gcs_lte_14", label="GCS <= 14", type=_BOOL),
            Component(id="altered_mental_status", label="Altered mental status", type=_BOOL),
            Component(
                id="palpable_skull_fracture",
                label="Palpable skull fracture (<2y) / Signs of basilar skull fracture (>=2y)",
                type=_BOOL,
            ),
            Component(
                id="scalp_hematoma",
                label="Occipital/parietal/temporal scalp hematoma (<2y) / History of LOC (>=2y)",
                type=_BOOL,
            ),
            Component(id="loss_of_consciousness", label="LOC >= 5 seconds", type=_BOOL),
            Component(id="severe_mechanism", label="Severe mechanism of injury", type=_BOOL),
            Component(
                id="acting_abnormally",
                label="Not acting normally per parent (<2y) / Severe headache (>=2y)",
                type=_BOOL,
            ),
        ],
        scoring=Scoring(
            method=ScoringMethod.ALGORITHM,
            ranges=[
                ProcedureStep(
                    "High", "ciTBI risk ~4.4%. CT recommended.",
                    when_any=["gcs_lte_14", "altered_mental_status", "palpable_skull_fracture"],
                ),
                ProcedureStep(
                    "Intermediate",
                    "ciTBI risk ~0.9-1.0%. Consider CT vs observation based on clinical factors.",
                    when_any=["scalp_hematoma", "loss_of_consciousness", "severe_mechanism",
                              "acting_abnormally"],
                ),
                ProcedureStep(
                    "Very Low",
                    "ciTBI risk <0.02-0.05%. CT not recommended. Observation appropriate.",
                ),
            ],
        ),
        suggested_treatments={
            "High": ["ct_head", "neurosurgery_consult", "admission"],
            "Intermediate": ["observation_4_6_hours", "ct_head_if_worsening"],
        },
    ),
    StructuredRule(
        id="ottawa_ankle",
        name="Ottawa Ankle",
        full_name="Ottawa Ankle Rules",
        category=_CAT,
        application="Determines need for ankle and foot radiography after injury.",
        applicable_chief_complaints=["ankle_pain", "ankle_injury", "foot_pain", "foot_injury",
                                     "ankle_swelling"],
        keywords=["Ottawa ankle", "ankle x-ray", "ankle fracture", "foot x-ray", "malleolus"],
        required_tests=["ankle_xray", "foot_xray"],
        components=[
            Component(id="lateral_malleolus_tenderness",
                      label="Bone tenderness at posterior edge or tip of lateral malleolus",
                      type=_BOOL, value=1),
            Component(id="medial_malleolus_tenderness",
                      label="Bone tenderness at posterior edge or tip of medial malleolus",
                      type=_BOOL, value=1),
            Component(id="fifth_metatarsal_tenderness",
                      label="Bone tenderness at base of fifth metatarsal", type=_BOOL, value=1),
            Component(id="navicular_tenderness", label="Bone tenderness at navicular",
                      type=_BOOL, value=1),
            Component(id="inability_to_bear_weight",
                      label="Inability to bear weight immediately and in ED (4 steps)",
                      type=_BOOL, value=1),
        ],
        scoring=Scoring(
            method=ScoringMethod.THRESHOLD,
            ranges=[
                NumericRange(0, 0, "Low",
                             "No criteria met. Fracture effectively ruled out. X-ray not indicated."),
                NumericRange(1, 5, "Not Low",
                             ">=1 criterion present. Ankle or foot X-ray indicated."),
            ],
        ),
        suggested_treatments={
            "Not Low": ["ankle_xray", "foot_xray", "splinting", "ortho_follow_up"],
        },
    ),
    StructuredRule(
        id="canadian_cspine",
        name="Canadian C-Spine",
        full_name="Canadian C-Spine Rule",
        category=_CAT,
        application="Determines need for cervical spine imaging in alert, stable trauma patients.",
        applicable_chief_complaints=["neck_pain", "neck_injury", "trauma", "mvc", "fall"],
        keywords=["Canadian C-Spine", "CCR", "cervical spine", "neck injury",
                  "c-spine clearance", "trauma"],
        required_tests=["cspine_ct", "cspine_xray"],
        components=[
            Component(id="age_gte_65", label="Age >= 65", type=_BOOL),
            Component(
                id="dangerous_mechanism",
                label=("Dangerous mechanism (fall >=3ft, axial load, MVC >100km/h, "
                       "bicycle collision, motorized recreational vehicle)"),
                type=_BOOL,
            ),
            Component(id="paresthesias", label="Paresthesias in extremities", type=_BOOL),
            Component(id="simple_rear_end_mvc", label="Simple rear-end MVC (low-risk factor)",
                      type=_BOOL),
            Component(id="sitting_in_ed", label="Sitting position in ED (low-risk factor)",
                      type=_BOOL),
            Component(id="ambulatory_at_any_time",
                      label="Ambulatory at any time since injury (low-risk factor)", type=_BOOL),
            Component(id="delayed_onset_neck_pain",
                      label="Delayed onset of neck pain (low-risk factor)", type=_BOOL),
            Component(id="midline_tenderness_absent",
                      label="Absence of midline cervical tenderness (low-risk factor)", type=_BOOL),
            Component(id="able_to_rotate_neck",
                      label="Able to actively rotate neck 45 degrees left and right", type=_BOOL),
        ],
        scoring=Scoring(
            method=ScoringMethod.ALGORITHM,
            ranges=[
                ProcedureStep(
                    "Not Low", "High-risk factor present. C-spine imaging indicated.",
                    when_any=["age_gte_65", "dangerous_mechanism", "paresthesias"],
                ),
                ProcedureStep(
                    "Not Low",
                    "No low-risk factor allows safe assessment of range of motion. "
                    "C-spine imaging indicated.",
                    when_none=["simple_rear_end_mvc", "sitting_in_ed", "ambulatory_at_any_time",
                               "delayed_onset_neck_pain", "midline_tenderness_absent"],
                ),
                ProcedureStep(
                    "Not Low",
                    "Unable to actively rotate neck 45 degrees. C-spine imaging indicated.",
                    when_none=["able_to_rotate_neck"],
                ),
                ProcedureStep(
                    "Low",
                    "No high-risk factors, >=1 low-risk factor, able to actively rotate neck. "
                    "Imaging not indicated.",
                ),
            ],
        ),
        suggested_treatments={
            "Not Low": ["cspine_ct", "cspine_xray", "cervical_collar",
                        "neurosurgery_consult_if_positive"],
        },
    ),
    StructuredRule(
        id="nexus",
        name="NEXUS",
        full_name="National Emergency X-Radiography Utilization Study Criteria",
        category=_CAT,
        application="Rules out cervical spine injury in trauma patients.",
        applicable_chief_complaints=["neck_pain", "neck_injury", "trauma", "mvc", "fall"],
        keywords=["NEXUS", "NLC", "cervical spine", "c-spine clearance", "neck injury", "trauma"],
        required_tests=["cspine_ct", "cspine_xray"],
        components=[
            Component(id="midline_tenderness", label="Posterior midline cervical-spine tenderness",
                      type=_BOOL, value=1),
            Component(id="focal_neurologic_deficit", label="Focal neurologic deficit",
                      type=_BOOL, value=1),
            Component(id="decreased_alertness", label="Decreased level of alertness",
                      type=_BOOL, value=1),
            Component(id="intoxication", label="Evidence of intoxication", type=_BOOL, value=1),
            Component(id="distracting_injury",
                      label="Clinically apparent painful distracting injury", type=_BOOL, value=1),
        ],
        scoring=Scoring(
            method=ScoringMethod.THRESHOLD,
            ranges=[
                NumericRange(0, 0, "Low",
                             "All 5 criteria absent. C-spine fracture effectively ruled out. "
                             "Imaging not indicated."),
                NumericRange(1, 5, "Not Low", ">=1 criterion present. C-spine imaging indicated."),
            ],
        ),
        suggested_treatments={
            "Not Low": ["cspine_ct", "cspine_xray", "cervical_collar"],
        },
    ),
    StructuredRule(
        id="shock_index",
        name="Shock Index",
        full_name="Shock Index",
        category=_CAT,
        application=(
            "Rapid bedside assessment of hemodynamic status. Identifies occult shock in "
            "trauma and hemorrhage before traditional vital signs are abnormal."
        ),
        applicable_chief_complaints=["trauma", "hemorrhage", "shock", "hypotension", "major_trauma"],
        keywords=["shock index", "SI", "heart rate SBP ratio", "occult shock", "hemorrhagic shock",
                  "massive transfusion", "hemodynamic instability"],
        components=[
            Component(id="shock_index", label="Shock Index (HR/SBP)",
                      type=ComponentType.NUMBER_RANGE, min=0, max=3,
                      auto_populate_from="vital_signs"),
        ],
        # Bands share their edges; the first band that holds wins
        scoring=Scoring(
            method=ScoringMethod.ALGORITHM,
            ranges=[
                ProcedureStep("Normal", "SI 0.5-0.7: Normal hemodynamics", min=0, max=0.7),
                ProcedureStep("Mild", "SI 0.7-1.0: Mild shock / borderline, close monitoring",
                              min=0.7, max=1.0),
                ProcedureStep("Moderate",
                              "SI 1.0-1.4: Moderate shock, likely significant hemorrhage, "
                              "consider transfusion",
                              min=1.0, max=1.4),
                ProcedureStep("Severe",
                              "SI >1.4: Severe shock, massive hemorrhage likely, activate "
                              "massive transfusion protocol",
                              min=1.4, max=3),
            ],
        ),
        suggested_treatments={
            "Moderate": ["type_and_crossmatch", "blood_transfusion", "trauma_surgery_consult"],
            "Severe": ["massive_transfusion_protocol", "trauma_surgery_consult"],
        },
    ),
]
