import unittest

from factories import make_grade
from services.qpi_calculator import aggregate, quality_points, round_qpi, yearly_average


class TestQualityPoints(unittest.TestCase):

    def test_units_times_grade_point(self):
        self.assertEqual(quality_points(3, 3.5), 10.5)
        self.assertEqual(quality_points(1.5, 2.5), 3.75)


class TestAggregate(unittest.TestCase):

    def test_two_course_example(self):
        grades = [make_grade("g1", "s1", 3, 95), make_grade("g2", "s1", 4, 88)]
        self.assertEqual([g.quality_points for g in grades], [10.5, 10.0])

        totals = aggregate(grades)
        self.assertEqual(totals.total_units, 7)
        self.assertEqual(totals.total_quality_points, 20.5)
        self.assertAlmostEqual(totals.qpi, 20.5 / 7)
        self.assertEqual(round_qpi(totals.qpi), 2.93)

    def test_ungraded_records_are_ignored(self):
        grades = [make_grade("g1", "s1", 3, 98), make_grade("g2", "s1", 5, None)]
        totals = aggregate(grades)
        self.assertEqual(totals.total_units, 3)
        self.assertEqual(totals.qpi, 4.0)

    def test_no_graded_units_gives_zero(self):
        self.assertEqual(aggregate([]).qpi, 0.0)
        self.assertEqual(aggregate([make_grade("g1", "s1", 3, None)]).qpi, 0.0)

    def test_values_are_not_rounded(self):
        grades = [make_grade("g1", "s1", 1, 98), make_grade("g2", "s1", 2, 90)]
        self.assertEqual(aggregate(grades).qpi, 10.0 / 3)


class TestYearlyAverage(unittest.TestCase):

    def test_unweighted_mean(self):
        self.assertEqual(yearly_average([3.0, 4.0]), 3.5)

    def test_weighted_mean(self):
        self.assertEqual(yearly_average([3.0, 4.0], [18, 6]), 3.25)

    def test_empty_and_zero_units(self):
        self.assertEqual(yearly_average([]), 0.0)
        self.assertEqual(yearly_average([3.0], [0]), 0.0)

    def test_mismatched_lengths_raise(self):
        with self.assertRaises(ValueError):
            yearly_average([3.0, 4.0], [3])

    def test_round_qpi(self):
        self.assertIsNone(round_qpi(None))
        self.assertEqual(round_qpi(3.14159, 3), 3.142)


if __name__ == "__main__":
    unittest.main()
