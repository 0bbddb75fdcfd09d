import pytest
from pydantic import ValidationError

from twindata.models.chapters import ChapterIndex, ChapterSubdivision
from twindata.models.vision import IMAGE_NOT_ANALYZED, ImageAnalysis


def test_chapter_index_rejects_blank_title() -> None:
    with pytest.raises(ValidationError):
        ChapterIndex(title=" ", page_from=1)


def test_chapter_index_rejects_page_zero() -> None:
    with pytest.raises(ValidationError):
        ChapterIndex(title="Intro", page_from=0)


def test_chapter_subdivision_from_envelope_accepts_either_case() -> None:
    subdivision = ChapterSubdivision.from_envelope(
        {
            "capitulo": {
                "titulo": "Intro",
                "Total_Subcapitulos": 2,
                "subtemas": [
                    {"title": "Origen", "texto": "Había una vez", "descripcion": "El comienzo"},
                    {"Title": "Final", "Texto": "Fin", "Descripcion": "El cierre"},
                ],
            }
        }
    )

    assert subdivision.titulo == "Intro"
    assert subdivision.total_subcapitulos == 2
    assert [subtema.title for subtema in subdivision.subtemas] == ["Origen", "Final"]
    assert subdivision.subtemas[1].texto == "Fin"


def test_chapter_subdivision_from_envelope_requires_capitulo() -> None:
    with pytest.raises(ValueError, match="capitulo"):
        ChapterSubdivision.from_envelope({"titulo": "Intro"})
    with pytest.raises(ValueError):
        ChapterSubdivision.from_envelope(["not", "an", "object"])


def test_image_analysis_reads_model_keys_and_keeps_extras() -> None:
    analysis = ImageAnalysis.model_validate(
        {
            "descripcionGenerica": "Salón luminoso",
            "detailsHTML": "<div>Salón</div>",
            "analisis_arquitectonico": {"tipo_de_espacio": "salón"},
            "confianza": 0.9,
        }
    )

    assert analysis.analyzed
    assert analysis.descripcion_generica == "Salón luminoso"
    assert analysis.details_html == "<div>Salón</div>"
    assert analysis.model_extra == {"confianza": 0.9}


def test_image_analysis_not_analyzed_sentinel() -> None:
    analysis = ImageAnalysis.not_analyzed()

    assert analysis.descripcion_generica == IMAGE_NOT_ANALYZED
    assert not analysis.analyzed
