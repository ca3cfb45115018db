"""Static station metadata: tube lines, rail operators, display names."""

from typing import Dict, List

# London Underground / DLR / Overground / Elizabeth line stations -> lines.
# Not exhaustive; misses fall through to the TfL API.
TUBE_STATION_LINES: Dict[str, List[str]] = {
    "Aldgate": ["Metropolitan", "Circle"],
    "Aldgate East": ["District", "Hammersmith & City"],
    "Angel": ["Northern"],
    "Archway": ["Northern"],
    "Arsenal": ["Piccadilly"],
    "Baker Street": ["Bakerloo", "Circle", "Hammersmith & City", "Jubilee", "Metropolitan"],
    "Balham": ["Northern"],
    "Bank": ["Central", "Northern", "Waterloo & City", "DLR"],
    "Barbican": ["Circle", "Hammersmith & City", "Metropolitan"],
    "Barking": ["District", "Hammersmith & City", "Overground"],
    "Bayswater": ["Circle", "District"],
    "Belsize Park": ["Northern"],
    "Bethnal Green": ["Central"],
    "Blackfriars": ["Circle", "District"],
    "Bond Street": ["Central", "Jubilee", "Elizabeth"],
    "Borough": ["Northern"],
    "Bounds Green": ["Piccadilly"],
    "Bow Road": ["District", "Hammersmith & City"],
    "Brent Cross": ["Northern"],
    "Brixton": ["Victoria"],
    "Burnt Oak": ["Northern"],
    "Caledonian Road": ["Piccadilly"],
    "Camden Town": ["Northern"],
    "Canada Water": ["Jubilee", "Overground"],
    "Canary Wharf": ["Jubilee", "DLR", "Elizabeth"],
    "Cannon Street": ["Circle", "District"],
    "Chalk Farm": ["Northern"],
    "Chancery Lane": ["Central"],
    "Charing Cross": ["Bakerloo", "Northern"],
    "Clapham Common": ["Northern"],
    "Clapham North": ["Northern"],
    "Clapham South": ["Northern"],
    "Cockfosters": ["Piccadilly"],
    "Colindale": ["Northern"],
    "Covent Garden": ["Piccadilly"],
    "Cutty Sark": ["DLR"],
    "Earl's Court": ["District", "Piccadilly"],
    "East Finchley": ["Northern"],
    "Edgware": ["Northern"],
    "Edgware Road": ["Bakerloo", "Circle", "District", "Hammersmith & City"],
    "Elephant & Castle": ["Bakerloo", "Northern"],
    "Embankment": ["Bakerloo", "Circle", "District", "Northern"],
    "Euston": ["Northern", "Victoria"],
    "Euston Square": ["Circle", "Hammersmith & City", "Metropolitan"],
    "Farringdon": ["Circle", "Hammersmith & City", "Metropolitan", "Elizabeth"],
    "Finchley Central": ["Northern"],
    "Finchley Road": ["Jubilee", "Metropolitan"],
    "Finsbury Park": ["Piccadilly", "Victoria"],
    "Fulham Broadway": ["District"],
    "Gloucester Road": ["Circle", "District", "Piccadilly"],
    "Golders Green": ["Northern"],
    "Goodge Street": ["Northern"],
    "Great Portland Street": ["Circle", "Hammersmith & City", "Metropolitan"],
    "Green Park": ["Jubilee", "Piccadilly", "Victoria"],
    "Hammersmith": ["Circle", "District", "Hammersmith & City", "Piccadilly"],
    "Hampstead": ["Northern"],
    "Hendon Central": ["Northern"],
    "High Barnet": ["Northern"],
    "High Street Kensington": ["Circle", "District"],
    "Highbury & Islington": ["Victoria", "Overground"],
    "Highgate": ["Northern"],
    "Holborn": ["Central", "Piccadilly"],
    "Holloway Road": ["Piccadilly"],
    "Hyde Park Corner": ["Piccadilly"],
    "Kennington": ["Northern"],
    "Kentish Town": ["Northern"],
    "King's Cross St Pancras": ["Circle", "Hammersmith & City", "Metropolitan", "Northern", "Piccadilly", "Victoria"],
    "Knightsbridge": ["Piccadilly"],
    "Ladbroke Grove": ["Circle", "Hammersmith & City"],
    "Lambeth North": ["Bakerloo"],
    "Lancaster Gate": ["Central"],
    "Leicester Square": ["Northern", "Piccadilly"],
    "Leyton": ["Central"],
    "Leytonstone": ["Central"],
    "Liverpool Street": ["Central", "Circle", "Hammersmith & City", "Metropolitan", "Elizabeth"],
    "London Bridge": ["Jubilee", "Northern"],
    "Maida Vale": ["Bakerloo"],
    "Manor House": ["Piccadilly"],
    "Mansion House": ["Circle", "District"],
    "Marble Arch": ["Central"],
    "Marylebone": ["Bakerloo"],
    "Mile End": ["Central", "District", "Hammersmith & City"],
    "Mill Hill East": ["Northern"],
    "Monument": ["Circle", "District"],
    "Moorgate": ["Circle", "Hammersmith & City", "Metropolitan", "Northern"],
    "Morden": ["Northern"],
    "Mornington Crescent": ["Northern"],
    "North Greenwich": ["Jubilee"],
    "Notting Hill Gate": ["Central", "Circle", "District"],
    "Old Street": ["Northern"],
    "Oval": ["Northern"],
    "Oxford Circus": ["Bakerloo", "Central", "Victoria"],
    "Paddington": ["Bakerloo", "Circle", "District", "Hammersmith & City", "Elizabeth"],
    "Piccadilly Circus": ["Bakerloo", "Piccadilly"],
    "Pimlico": ["Victoria"],
    "Queensway": ["Central"],
    "Regent's Park": ["Bakerloo"],
    "Richmond": ["District", "Overground"],
    "Russell Square": ["Piccadilly"],
    "Seven Sisters": ["Victoria"],
    "Shepherd's Bush": ["Central", "Overground"],
    "Sloane Square": ["Circle", "District"],
    "South Kensington": ["Circle", "District", "Piccadilly"],
    "Southwark": ["Jubilee"],
    "St James's Park": ["Circle", "District"],
    "St John's Wood": ["Jubilee"],
    "St Paul's": ["Central"],
    "Stockwell": ["Northern", "Victoria"],
    "Stratford": ["Central", "Jubilee", "DLR", "Elizabeth", "Overground"],
    "Swiss Cottage": ["Jubilee"],
    "Temple": ["Circle", "District"],
    "Tooting Bec": ["Northern"],
    "Tooting Broadway": ["Northern"],
    "Tottenham Court Road": ["Central", "Northern", "Elizabeth"],
    "Tottenham Hale": ["Victoria"],
    "Tower Hill": ["Circle", "District"],
    "Tufnell Park": ["Northern"],
    "Turnpike Lane": ["Piccadilly"],
    "Vauxhall": ["Victoria"],
    "Victoria": ["Circle", "District", "Victoria"],
    "Walthamstow Central": ["Victoria", "Overground"],
    "Warren Street": ["Northern", "Victoria"],
    "Waterloo": ["Bakerloo", "Jubilee", "Northern", "Waterloo & City"],
    "Wembley Park": ["Jubilee", "Metropolitan"],
    "West Ham": ["District", "Hammersmith & City", "Jubilee", "DLR"],
    "West Hampstead": ["Jubilee"],
    "Westminster": ["Circle", "District", "Jubilee"],
    "White City": ["Central"],
    "Whitechapel": ["District", "Hammersmith & City", "Elizabeth", "Overground"],
    "Wimbledon": ["District"],
    "Wood Green": ["Piccadilly"],
    "Woodside Park": ["Northern"],
}

# National Rail stations -> train operating companies. A subset of
# major stations; misses fall through to Wikidata and name heuristics.
TRAIN_STATION_OPERATORS: Dict[str, List[str]] = {
    "London Blackfriars": ["Southeastern", "Thameslink"],
    "London Bridge": ["Southeastern", "Southern", "Thameslink"],
    "London Cannon Street": ["Southeastern"],
    "London Charing Cross": ["Southeastern"],
    "London Euston": ["Avanti West Coast", "London Northwestern"],
    "London Fenchurch Street": ["c2c"],
    "London King's Cross": ["Great Northern", "LNER"],
    "London Liverpool Street": ["Greater Anglia", "Elizabeth"],
    "London Marylebone": ["Chiltern Railways"],
    "London Paddington": ["Great Western Railway", "Heathrow Express", "Elizabeth"],
    "London St Pancras International": ["Thameslink", "East Midlands Railway", "Southeastern", "Eurostar"],
    "London Victoria": ["Southern", "Southeastern"],
    "London Waterloo": ["South Western Railway"],
    "Clapham Junction": ["South Western Railway", "Southern"],
    "East Croydon": ["Southern", "Thameslink"],
    "Gatwick Airport": ["Southern", "Thameslink", "Great Western Railway"],
    "Stansted Airport": ["Greater Anglia"],
    "Luton Airport Parkway": ["Thameslink", "East Midlands Railway"],
    "Watford Junction": ["Avanti West Coast", "London Northwestern"],
    "Milton Keynes Central": ["Avanti West Coast", "London Northwestern"],
    "Stevenage": ["Great Northern", "Thameslink", "LNER"],
    "Peterborough": ["Great Northern", "LNER", "East Midlands Railway"],
    "Cambridge": ["Greater Anglia", "Thameslink", "Great Northern"],
    "Oxford": ["Great Western Railway", "Chiltern Railways", "CrossCountry"],
    "Reading": ["Great Western Railway", "Elizabeth", "South Western Railway", "CrossCountry"],
    "Brighton": ["Southern", "Thameslink"],
    "Southampton Central": ["South Western Railway", "Southern", "CrossCountry"],
    "Birmingham New Street": ["Avanti West Coast", "West Midlands Railway", "CrossCountry"],
    "Birmingham Moor Street": ["Chiltern Railways", "West Midlands Railway"],
    "Manchester Piccadilly": ["Avanti West Coast", "Northern", "TransPennine Express"],
    "Manchester Victoria": ["Northern", "TransPennine Express"],
    "Liverpool Lime Street": ["Avanti West Coast", "Northern", "TransPennine Express"],
    "Leeds": ["LNER", "Northern", "TransPennine Express", "CrossCountry"],
    "Sheffield": ["East Midlands Railway", "Northern", "CrossCountry"],
    "Newcastle": ["LNER", "Northern", "TransPennine Express", "CrossCountry"],
    "Nottingham": ["East Midlands Railway", "CrossCountry"],
    "Leicester": ["East Midlands Railway", "CrossCountry"],
    "Derby": ["East Midlands Railway", "CrossCountry"],
    "Bristol Temple Meads": ["Great Western Railway", "CrossCountry"],
    "Bristol Parkway": ["Great Western Railway", "CrossCountry"],
    "Cardiff Central": ["Transport for Wales", "Great Western Railway"],
    "Edinburgh Waverley": ["ScotRail", "LNER"],
    "Glasgow Central": ["ScotRail", "Avanti West Coast"],
    "Chelmsford": ["Greater Anglia"],
    "Colchester": ["Greater Anglia"],
    "Ipswich": ["Greater Anglia"],
    "Norwich": ["Greater Anglia"],
    "Southend Central": ["c2c"],
    "Basildon": ["c2c"],
    "Upminster": ["c2c"],
    "Romford": ["Elizabeth", "Greater Anglia"],
    "Shenfield": ["Elizabeth", "Greater Anglia"],
    "Ilford": ["Elizabeth"],
    "Abbey Wood": ["Elizabeth", "Southeastern", "Thameslink"],
    "Ealing Broadway": ["Elizabeth", "Great Western Railway"],
    "Slough": ["Elizabeth", "Great Western Railway"],
    "Maidenhead": ["Elizabeth", "Great Western Railway"],
    "Bedford": ["Thameslink", "East Midlands Railway"],
    "Luton": ["Thameslink", "East Midlands Railway"],
    "Harpenden": ["Thameslink"],
    "St Albans City": ["Thameslink"],
    "Radlett": ["Thameslink"],
    "Elstree & Borehamwood": ["Thameslink"],
    "Mill Hill Broadway": ["Thameslink"],
    "Hendon": ["Thameslink"],
    "Cricklewood": ["Thameslink"],
    "West Hampstead Thameslink": ["Thameslink"],
    "City Thameslink": ["Thameslink"],
    "New Barnet": ["Great Northern"],
    "Oakleigh Park": ["Great Northern"],
    "Hadley Wood": ["Great Northern"],
    "Potters Bar": ["Great Northern"],
    "Tonbridge": ["Southeastern"],
    "Sevenoaks": ["Southeastern", "Thameslink"],
    "Orpington": ["Southeastern"],
    "Bromley South": ["Southeastern", "Thameslink"],
    "Canterbury West": ["Southeastern"],
    "Ashford International": ["Southeastern"],
    "Woking": ["South Western Railway"],
    "Guildford": ["South Western Railway", "Great Western Railway"],
    "Wimbledon": ["South Western Railway", "Thameslink"],
}

# Operator name -> compact display name
OPERATOR_DISPLAY_NAMES: Dict[str, str] = {
    "Great Western Railway": "GWR",
    "South Western Railway": "SWR",
    "Avanti West Coast": "Avanti",
    "East Midlands Railway": "EMR",
    "Transport for Wales": "TfW",
    "Chiltern Railways": "Chiltern",
    "West Midlands Railway": "West Midlands",
    "London Northwestern": "LNWR",
    "Heathrow Express": "Heathrow",
    "Elizabeth": "Elizabeth Line",
}

# TfL line id -> line name
TFL_LINE_NAMES: Dict[str, str] = {
    "bakerloo": "Bakerloo",
    "central": "Central",
    "circle": "Circle",
    "district": "District",
    "hammersmith-city": "Hammersmith & City",
    "jubilee": "Jubilee",
    "metropolitan": "Metropolitan",
    "northern": "Northern",
    "piccadilly": "Piccadilly",
    "victoria": "Victoria",
    "waterloo-city": "Waterloo & City",
    "elizabeth": "Elizabeth",
    "dlr": "DLR",
    "london-overground": "Overground",
    "tram": "Tram",
}

# Wikidata entity id -> train operating company
WIKIDATA_OPERATORS: Dict[str, str] = {
    "Q1480969": "Avanti West Coast",
    "Q1829079": "c2c",
    "Q1480991": "Chiltern Railways",
    "Q1480963": "CrossCountry",
    "Q1480987": "East Midlands Railway",
    "Q1480945": "Eurostar",
    "Q1480981": "Great Western Railway",
    "Q1480979": "Greater Anglia",
    "Q1480989": "London North Eastern Railway",
    "Q1480959": "Northern",
    "Q1480971": "ScotRail",
    "Q1480985": "Southeastern",
    "Q1480967": "Southern",
    "Q1480957": "South Western Railway",
    "Q1480993": "Thameslink",
    "Q1480975": "TransPennine Express",
    "Q1480977": "Transport for Wales",
    "Q1480955": "West Midlands Railway",
    "Q201966": "London Overground",
    "Q185532": "Elizabeth",
    "Q215682": "Merseyrail",
    "Q783533": "Heathrow Express",
}

# (name substrings, operators) pairs checked in order; all matching rules contribute
LONDON_TERMINAL_HEURISTICS = [
    (("EUSTON",), ["Avanti West Coast"]),
    (("KING", "ST PANCRAS"), ["Great Northern", "Thameslink"]),
    (("LIVERPOOL STREET",), ["Greater Anglia"]),
    (("PADDINGTON",), ["Great Western Railway", "Elizabeth"]),
    (("VICTORIA",), ["Southern", "Southeastern"]),
    (("WATERLOO",), ["South Western Railway"]),
    (("BRIDGE",), ["Southeastern", "Thameslink"]),
    (("CANNON", "CHARING"), ["Southeastern"]),
    (("MARYLEBONE",), ["Chiltern Railways"]),
    (("FENCHURCH",), ["c2c"]),
]

REGIONAL_HEURISTICS = [
    (("MANCHESTER",), ["Avanti West Coast", "Northern", "TransPennine Express"]),
    (("BIRMINGHAM",), ["Avanti West Coast", "West Midlands Railway", "CrossCountry"]),
    (("LEEDS",), ["Northern", "TransPennine Express"]),
    (("GLASGOW", "EDINBURGH"), ["ScotRail"]),
    (("BRISTOL",), ["Great Western Railway", "CrossCountry"]),
    (("CARDIFF",), ["Transport for Wales", "Great Western Railway"]),
    (("NEWCASTLE",), ["LNER", "Northern", "TransPennine Express"]),
    (("SHEFFIELD", "NOTTINGHAM", "LEICESTER"), ["East Midlands Railway", "CrossCountry"]),
    (("OXFORD",), ["Great Western Railway", "Chiltern Railways"]),
    (("CAMBRIDGE",), ["Greater Anglia", "Thameslink"]),
    (("BRIGHTON",), ["Southern", "Thameslink"]),
    (("READING",), ["Great Western Railway", "Elizabeth"]),
    (("BARNET", "OAKLEIGH", "HADLEY"), ["Great Northern"]),
    (("ORPINGTON", "BROMLEY"), ["Southeastern"]),
    (("WOKING", "GUILDFORD", "SURREY"), ["South Western Railway"]),
]
