import unittest
from datetime import datetime

from factories import make_grade, make_graph, make_semester
from services.aggregation import recalculate
from services.csv_export import (
    FULL_HEADERS,
    REIMPORT_HEADERS,
    ExportLayout,
    ExportProfile,
    export_csv,
    export_flat,
    export_sectioned,
    export_semester_summary,
    format_value,
    generate_filename,
    with_bom,
)
from services.csv_import import import_csv
from services.errors import UnsupportedExportFormat


def _sample_graph():
    first = [
        make_grade("g1", "s1", 3, 95, code="CS-101", title="Intro, Part 1", notes='said "retake"'),
        make_grade("g2", "s1", 1.5, 88.5, code="CS-102", title="Lab"),
    ]
    second = [
        make_grade("g3", "s2", 4, None, code="MATH-201", title="Calculus", notes="line one\nline two"),
        make_grade("g4", "s2", 2, 75, code="PE-101", title="Physical Education"),
    ]
    semesters = [
        make_semester("s2", "2024-2025", "first", year_level=2, grades=second),
        make_semester("s1", "2023-2024", "first", year_level=1, grades=first),
        make_semester("s-empty", "2023-2024", "second", year_level=1),
    ]
    return recalculate(make_graph(semesters, first + second), now=1)


class TestFormatValue(unittest.TestCase):

    def test_plain_values(self):
        self.assertEqual(format_value(None), "")
        self.assertEqual(format_value(3.0), "3")
        self.assertEqual(format_value(88.5), "88.5")
        self.assertEqual(format_value(2), "2")
        self.assertEqual(format_value("CS-101"), "CS-101")

    def test_quoting(self):
        self.assertEqual(format_value("a,b"), '"a,b"')
        self.assertEqual(format_value('say "hi"'), '"say ""hi"""')
        self.assertEqual(format_value("x\ny"), '"x\ny"')
        self.assertEqual(format_value("x\ry"), '"x\ry"')

    def test_quoting_follows_delimiter(self):
        self.assertEqual(format_value("a,b", ";"), "a,b")
        self.assertEqual(format_value("a;b", ";"), '"a;b"')


class TestFlatExport(unittest.TestCase):

    def test_full_profile(self):
        lines = export_flat(_sample_graph()).split("\n")
        self.assertEqual(lines[0], ",".join(FULL_HEADERS))
        # 학기 등록 순서(s2 -> s1), 그다음 학기 내 성적 순서
        self.assertTrue(lines[1].startswith("MATH-201,Calculus,4,,,,,first,2024-2025,2,"))
        self.assertIn("CS-101,\"Intro, Part 1\",3,95,B+,3.5,10.5,first,2023-2024,1,", export_flat(_sample_graph()))

    def test_reimport_profile_has_no_derived_fields(self):
        text = export_flat(_sample_graph(), ExportProfile.REIMPORT)
        self.assertEqual(text.split("\n")[0], ",".join(REIMPORT_HEADERS))
        self.assertNotIn("Letter Grade", text)
        self.assertNotIn("B+", text)

    def test_summary_block(self):
        text = export_flat(_sample_graph(), include_summary=True)
        self.assertIn("\n\n=== ACADEMIC SUMMARY ===\n", text)
        self.assertIn("Total Units: 6.5", text)
        self.assertIn("Cumulative QPI: ", text)
        self.assertIn("Includes Summer: Yes", text)

    def test_summary_never_in_reimport_profile(self):
        text = export_flat(_sample_graph(), ExportProfile.REIMPORT, include_summary=True)
        self.assertNotIn("ACADEMIC SUMMARY", text)

    def test_without_headers_and_selected_semesters(self):
        text = export_flat(_sample_graph(), include_headers=False, semester_ids=["s1"])
        lines = text.split("\n")
        self.assertEqual(len(lines), 2)
        self.assertTrue(lines[0].startswith("CS-101,"))


class TestSectionedExport(unittest.TestCase):

    def test_sections_ordered_by_year_level_then_semester_type(self):
        text = export_sectioned(_sample_graph())
        sections = text.split("\n\n")
        self.assertEqual(len(sections), 2)           # 빈 학기는 건너뜀
        self.assertTrue(sections[0].startswith("=== 2023-2024 - First Semester ===\n"))
        self.assertTrue(sections[1].startswith("=== 2024-2025 - First Semester ===\n"))
        self.assertEqual(sections[0].split("\n")[1], ",".join(FULL_HEADERS))

    def test_summer_sorts_after_second(self):
        g1 = make_grade("a", "sum", 3, 90)
        g2 = make_grade("b", "sec", 3, 90)
        semesters = [
            make_semester("sum", semester_type="summer", grades=[g1]),
            make_semester("sec", semester_type="second", grades=[g2]),
        ]
        text = export_csv(make_graph(semesters, [g1, g2]), layout=ExportLayout.SECTIONED)
        self.assertLess(text.index("Second Semester"), text.index("Summer Semester"))

    def test_reimport_profile_needs_flat_layout(self):
        with self.assertRaises(UnsupportedExportFormat):
            export_csv(_sample_graph(), ExportProfile.REIMPORT, ExportLayout.SECTIONED)


class TestRoundTrip(unittest.TestCase):

    def test_reimport_profile_reproduces_every_record(self):
        graph = _sample_graph()
        result = import_csv(export_flat(graph, ExportProfile.REIMPORT))

        self.assertEqual(result.errors, [])
        exported = sorted(
            (g.course_code, g.course_title, g.units, g.numerical_grade, g.notes) for g in graph.grades
        )
        imported = sorted(
            (e.course_code, e.course_title, e.units, e.numerical_grade, e.notes) for e in result.entries
        )
        self.assertEqual(imported, exported)

    def test_padded_text_survives_round_trip(self):
        grade = make_grade("g1", "s1", 3, 95, code=" CS-101 ", title=" Intro ", notes="  see syllabus ")
        self.assertEqual(grade.notes, "see syllabus")
        graph = recalculate(make_graph([make_semester("s1", grades=[grade])], [grade]), now=1)

        entry = import_csv(export_flat(graph, ExportProfile.REIMPORT)).entries[0]

        self.assertEqual(
            (entry.course_code, entry.course_title, entry.notes),
            (grade.course_code, grade.course_title, grade.notes),
        )

    def test_round_trip_keeps_semester_context(self):
        result = import_csv(export_flat(_sample_graph(), ExportProfile.REIMPORT))
        self.assertEqual(set(result.groups), {"2023-2024-first", "2024-2025-first"})
        self.assertEqual({e.year_level for e in result.entries}, {1, 2})

    def test_round_trip_with_custom_delimiter(self):
        graph = _sample_graph()
        result = import_csv(export_flat(graph, ExportProfile.REIMPORT, delimiter=";"), delimiter=";")
        self.assertEqual(result.imported_records, len(graph.grades))


class TestExtras(unittest.TestCase):

    def test_semester_summary(self):
        graph = _sample_graph()
        semester = graph.find_semester("s1")
        text = export_semester_summary(semester, graph.ordered_grades_for(semester))
        self.assertIn("Semester,first", text)
        self.assertIn("Total Units,4.5", text)
        self.assertIn("QPI,3.17", text)
        self.assertIn("CS-102,Lab,1.5,C+,2.5,3.75", text)

    def test_generate_filename(self):
        moment = datetime(2024, 5, 1, 13, 45, 0)
        self.assertEqual(generate_filename(now=moment), "grades_2024-05-01_13-45-00.csv")
        self.assertEqual(generate_filename("backup", "json", now=moment), "backup_2024-05-01_13-45-00.json")

    def test_bom_is_added_once(self):
        self.assertEqual(with_bom("a"), "\ufeffa")
        self.assertEqual(with_bom(with_bom("a")), "\ufeffa")


if __name__ == "__main__":
    unittest.main()
