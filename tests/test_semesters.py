"""
Unit tests for the semester lookup table.

Contract:
- every label maps to exactly one folder/title, in table order
- unknown labels raise UnknownSemesterError (no silent default)
- a field can list several semesters separated by , ， or 、
"""

import unittest

from coursedocs.errors import UnknownSemesterError
from coursedocs.semesters import SEMESTERS, parse_semester_labels, resolve_semester, semester_by_folder


class TestSemesterTable(unittest.TestCase):
    def test_table_has_fifteen_unique_rows(self) -> None:
        self.assertEqual(len(SEMESTERS), 15)
        self.assertEqual(len({s.folder for s in SEMESTERS}), 15)
        self.assertEqual([s.order for s in SEMESTERS], list(range(15)))

    def test_resolve_known_label(self) -> None:
        key = resolve_semester("第一学年秋季")
        self.assertEqual(key.folder, "fresh-autumn")
        self.assertEqual(key.title, "大一·秋")

        key = resolve_semester(" 第五学年夏季 ")
        self.assertEqual(key.folder, "fifth-summer")

    def test_unknown_label_raises(self) -> None:
        with self.assertRaises(UnknownSemesterError) as ctx:
            resolve_semester("第六学年秋季")
        self.assertEqual(ctx.exception.label, "第六学年秋季")
        self.assertIn("第六学年秋季", str(ctx.exception))

    def test_semester_by_folder(self) -> None:
        self.assertEqual(semester_by_folder("junior-spring").label, "第三学年春季")
        self.assertIsNone(semester_by_folder("nowhere"))


class TestParseLabels(unittest.TestCase):
    def test_empty_field_means_no_semester(self) -> None:
        self.assertEqual(parse_semester_labels(""), [])
        self.assertEqual(parse_semester_labels("  "), [])

    def test_multiple_separators_and_duplicates(self) -> None:
        keys = parse_semester_labels("第三学年秋季，第四学年秋季、第三学年秋季,")
        self.assertEqual([k.folder for k in keys], ["junior-autumn", "senior-autumn"])

    def test_one_unknown_token_fails_the_field(self) -> None:
        with self.assertRaises(UnknownSemesterError):
            parse_semester_labels("第一学年秋季,秋季")


if __name__ == "__main__":
    unittest.main()
