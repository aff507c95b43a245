# config/historical_data.py
# Sample annual history (percent) for the TSP funds, CPI-U inflation
# (December over December) and the Social Security COLA, 1988-2024.
# Pre-2001 S and I values are index proxies for the funds.

#        year     C       S       I       F      G    CPI   COLA
SAMPLE_HISTORY = (
    (1988,  16.61,  20.20,  28.30,   7.90, 8.80, 4.4, 4.0),
    (1989,  31.69,  23.90,  10.50,  14.50, 8.80, 4.6, 4.7),
    (1990,  -3.10, -13.60, -23.40,   9.00, 8.90, 6.1, 5.4),
    (1991,  30.47,  43.50,  12.10,  16.00, 8.20, 3.1, 3.7),
    (1992,   7.62,  11.90, -12.20,   7.40, 7.20, 2.9, 3.0),
    (1993,  10.08,  14.60,  32.60,   9.70, 6.10, 2.7, 2.6),
    (1994,   1.32,  -2.70,   7.80,  -2.90, 7.20, 2.7, 2.8),
    (1995,  37.58,  33.50,  11.20,  18.50, 7.00, 2.5, 2.6),
    (1996,  22.96,  17.20,   6.10,   3.60, 6.80, 3.3, 2.9),
    (1997,  33.36,  25.70,   1.80,   9.70, 6.80, 1.7, 2.1),
    (1998,  28.58,   8.60,  20.00,   8.70, 5.70, 1.6, 1.3),
    (1999,  21.04,  35.50,  27.00,  -0.80, 6.00, 2.7, 2.5),
    (2000,  -9.10, -15.80, -14.20,  11.60, 6.40, 3.4, 3.5),
    (2001, -11.89,  -9.04, -15.21,   8.61, 5.39, 1.6, 2.6),
    (2002, -22.10, -18.14, -15.98,  10.27, 5.00, 2.4, 1.4),
    (2003,  28.68,  42.92,  37.94,   4.11, 4.11, 1.9, 2.1),
    (2004,  10.88,  18.03,  20.00,   4.30, 4.30, 3.3, 2.7),
    (2005,   4.91,  10.45,  13.63,   2.40, 4.49, 3.4, 4.1),
    (2006,  15.79,  15.30,  26.32,   4.40, 4.93, 2.5, 3.3),
    (2007,   5.49,   5.49,  11.43,   7.09, 4.87, 4.1, 2.3),
    (2008, -37.00, -38.32, -42.43,   5.45, 3.75, 0.1, 5.8),
    (2009,  26.46,  34.85,  30.04,   5.99, 2.97, 2.7, 0.0),
    (2010,  15.06,  29.06,   7.94,   7.13, 2.81, 1.5, 0.0),
    (2011,   2.11,  -3.38, -11.81,   7.89, 2.45, 3.0, 3.6),
    (2012,  16.00,  18.57,  18.62,   4.29, 1.47, 1.7, 1.7),
    (2013,  32.39,  38.35,  22.13,  -1.68, 1.89, 1.5, 1.5),
    (2014,  13.69,   7.80,  -5.27,   6.73, 2.31, 0.8, 1.7),
    (2015,   1.38,  -2.92,  -0.51,   0.91, 2.04, 0.7, 0.0),
    (2016,  11.96,  16.35,   2.10,   2.91, 1.82, 2.1, 0.3),
    (2017,  21.83,  18.22,  25.42,   3.82, 2.33, 2.1, 2.0),
    (2018,  -4.38,  -9.26, -13.43,   0.15, 2.91, 1.9, 2.8),
    (2019,  31.49,  27.97,  22.47,   8.68, 2.24, 2.3, 1.6),
    (2020,  18.40,  31.85,   8.17,   7.50, 0.97, 1.4, 1.3),
    (2021,  28.71,  12.45,  11.45,  -1.46, 1.38, 7.0, 5.9),
    (2022, -18.11, -26.26, -13.94, -12.83, 2.98, 6.5, 8.7),
    (2023,  26.29,  25.30,  18.38,   5.58, 4.22, 3.4, 3.2),
    (2024,  25.02,  16.93,   4.42,   1.33, 4.44, 2.9, 2.5),
)

SAMPLE_COLUMNS = ("year", "C", "S", "I", "F", "G", "inflation", "cola")
