"""
records.py — Simulated clinical data for the CareFlow demo.

Nothing here touches a real EHR; values are generated so the assistant
always has something concrete to read out.
"""

from __future__ import annotations

import random
from datetime import date, timedelta
from typing import Dict, Optional

PATIENT_NAMES = ["Sarah Mitchell", "James Chen", "Maria Garcia", "Robert Johnson", "Lisa Thompson"]

CONDITIONS = {
    "General Routine": ["Type 2 Diabetes", "Hypertension", "Hyperlipidemia"],
    "Emergency": ["Acute MI", "Sepsis", "Respiratory Distress"],
    "Pediatric": ["Asthma", "ADHD", "Allergic Rhinitis"],
    "Geriatric": ["CHF", "COPD", "Osteoarthritis"],
}

MEDICATIONS = ["Lisinopril 10mg QD", "Metformin 500mg BID", "Atorvastatin 20mg QHS", "Aspirin 81mg QD"]
ALLERGIES = ["Penicillin (rash)", "Sulfa drugs (hives)", "NSAIDs (GI upset)", "None documented"]


def generate_patient_record(patient_id: str, specialty: str = "General Routine", rng: Optional[random.Random] = None) -> str:
    rng = rng or random.Random()
    conditions = CONDITIONS.get(specialty) or CONDITIONS["General Routine"]
    last_visit = date.today() - timedelta(days=rng.randint(1, 30))
    bp = f"{rng.randint(110, 139)}/{rng.randint(70, 89)}"
    temp = f"{97 + rng.random() * 2:.1f}"

    return (
        f"📋 **Patient #{patient_id}** ({rng.choice(PATIENT_NAMES)})\n\n"
        f"**Last Visit:** {last_visit.isoformat()}\n"
        f"**Vitals:** BP {bp}, HR {rng.randint(60, 99)}bpm, Temp {temp}°F, SpO2 {rng.randint(95, 99)}%\n\n"
        f"**Diagnosis:** {rng.choice(conditions)}\n"
        "**Current Medications:**\n"
        f"• {rng.choice(MEDICATIONS)}\n"
        f"• {rng.choice(MEDICATIONS)}\n\n"
        f"**Known Allergies:** {rng.choice(ALLERGIES)}\n\n"
        "**Recent Notes:** Patient stable, responding well to treatment. Follow-up scheduled in 2 weeks."
    )


def generate_vitals(rng: Optional[random.Random] = None) -> Dict[str, str]:
    """One reading from the simulated bedside monitor."""
    rng = rng or random.Random()
    return {
        "heart_rate": str(rng.randint(65, 84)),
        "blood_pressure": f"{rng.randint(115, 129)}/{rng.randint(70, 84)}",
        "spo2": f"{rng.randint(96, 99)}%",
        "respiratory_rate": str(rng.randint(14, 19)),
    }


def format_vitals(vitals: Dict[str, str]) -> str:
    return (
        "Current vital signs on screen:\n"
        f"- Heart Rate: {vitals['heart_rate']} bpm\n"
        f"- Blood Pressure: {vitals['blood_pressure']} mmHg\n"
        f"- SpO2: {vitals['spo2']}\n"
        f"- Respiratory Rate: {vitals['respiratory_rate']} breaths/min\n\n"
        "Read these EXACT values to the user. Do NOT make up different numbers."
    )


FLOOR_MAP_SUMMARY = """The hospital floor map is now open! It shows:

**Live Hospital Status:**
- **12 patients** currently waiting (avg ~23 min wait)
- **28 active patients** across all floors
- **47 discharged** today
- **2 critical alerts** requiring attention

**Hospital Floors:**
- **F1 - Emergency & Admissions:** ER rooms, waiting area
- **F2 - General Care:** 24 rooms, patient recovery
- **F3 - ICU & Critical Care:** 8 beds, intensive monitoring
- **F4 - Surgery & Recovery:** 16 rooms, pre/post-op
- **F5 - Maternity & Pediatrics:** 20 rooms

Click any room to see patient details. The map shows real-time status with color coding: red for critical, orange for monitoring, green for stable."""

HOSPITAL_STATS = """**Current Hospital Status:**

- **Patients Waiting:** 12 (average wait: ~23 minutes)
- **Active Patients:** 28 across all floors
- **Discharged Today:** 47 (+12 from yesterday)
- **Critical Alerts:** 2 requiring immediate attention

**Floor Breakdown:**
- Emergency (F1): 3 critical, 4 waiting
- General Care (F2): 5 stable patients
- ICU (F3): 2 critical patients
- Surgery (F4): 1 patient in recovery
- Maternity (F5): No current patients

**Staffing:** All nurse stations staffed. Dr. Martinez on call for Emergency."""
