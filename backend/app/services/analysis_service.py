"""
Analysis Service — HR document analysis reports with Google Gemini.
"""
import google.generativeai as genai

from app.config import get_settings
from app.utils.logger import log_event

settings = get_settings()

_model = None


def get_analysis_model():
    """Lazily initialize the Gemini model."""
    global _model
    if _model is None and settings.GEMINI_API_KEY:
        genai.configure(api_key=settings.GEMINI_API_KEY)
        _model = genai.GenerativeModel(
            model_name=settings.GEMINI_MODEL,
            system_instruction=ANALYST_PROMPT,
            generation_config={
                "temperature": 0.2,
                "max_output_tokens": settings.REPORT_MAX_OUTPUT_TOKENS,
            },
        )
    return _model


ANALYST_PROMPT = """You are an expert HR analyst and consultant with extensive experience in human resources management, employee assessment, and organizational development. Analyze the HR document you are given and produce a professional, structured report with these sections:

1. Executive Summary - key findings, critical insights and recommendations
2. Document Analysis - main themes, key HR metrics and indicators, compliance considerations
3. Employee/Team Assessment (if applicable) - performance indicators, skills and competencies, development opportunities, team dynamics
4. Organizational Impact - culture implications, resource allocation recommendations, risk assessment
5. Action Items - prioritized recommendations, implementation suggestions, timeline considerations
6. Compliance and Best Practices - legal considerations, industry standards alignment, policy recommendations

Use appropriate HR terminology. Focus on actionable insights while maintaining confidentiality and professional ethics."""


class AnalysisService:
    """AI-written HR analysis reports."""

    @staticmethod
    def generate_report(text: str) -> str:
        """Generate an analysis report for already-extracted document text.

        Raises:
            ValueError: AI is not configured, the call failed, or nothing came back.
        """
        model = get_analysis_model()
        if not model:
            raise ValueError(
                "AI analysis is not available — GEMINI_API_KEY is not configured."
            )

        try:
            response = model.generate_content(text)
        except Exception as e:
            log_event("analysis", f"Gemini API call failed: {e}")
            raise ValueError(f"AI processing failed: {str(e)}")

        try:
            report = response.text
        except ValueError:
            log_event("analysis", f"response.text failed. Candidates: {response.candidates}")
            raise ValueError("AI failed to generate a readable report.")

        if not report or not report.strip():
            raise ValueError("AI returned an empty response.")
        return report.strip()
